from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple


UNASSIGNED = "Unassigned"

CATEGORY_DEVELOPMENT = "development"
CATEGORY_OTHER = "other"


class RetrievalError(Exception):
    """Raised when an issue lookup cannot resolve a key."""

    def __init__(self, key: str, detail: str = ""):
        self.key = key
        self.detail = detail
        super().__init__(f"Could not retrieve issue {key}: {detail}" if detail else f"Could not retrieve issue {key}")


@dataclass
class IssueLink:
    type_name: str
    inward: str = ""
    outward: str = ""
    inward_issue: Optional[str] = None
    outward_issue: Optional[str] = None
    inward_status: Optional[str] = None
    outward_status: Optional[str] = None


@dataclass
class Issue:
    key: str
    summary: Optional[str] = None
    status: Optional[str] = None
    assignee: str = UNASSIGNED
    priority: Optional[str] = None
    issue_type: Optional[str] = None
    parent_key: Optional[str] = None
    original_estimate_hours: Optional[float] = None
    remaining_estimate_hours: Optional[float] = None
    created: Optional[datetime] = None
    resolved: Optional[datetime] = None
    due_date: Optional[date] = None
    links: List[IssueLink] = field(default_factory=list)
    sprints: List[str] = field(default_factory=list)

    @property
    def project_key(self) -> str:
        return self.key.rsplit("-", 1)[0]

    @property
    def remaining_hours(self) -> float:
        if self.remaining_estimate_hours is not None:
            return max(0.0, self.remaining_estimate_hours)
        if self.original_estimate_hours is not None:
            return max(0.0, self.original_estimate_hours)
        return 0.0


@dataclass
class WorkLog:
    issue_key: str
    author: str
    hours: float
    started: Optional[datetime] = None
    category: Optional[str] = None
    comment: Optional[str] = None


@dataclass
class EmployeeCapacity:
    employee: str
    project: str
    weekly_hours: float

    def sprint_capacity(self, sprint_length_days: int = 14) -> float:
        return self.weekly_hours * sprint_length_days / 7


@dataclass
class SprintCapacity:
    employee: str
    sprint: int
    project: str
    capacity: float
    available_capacity: float
    start_date: Optional[date] = None


@dataclass
class PlannedIssue:
    key: str
    sprint: int
    hours: float
    assignee: str
    project: str
    summary: Optional[str] = None
    worklog_hours: Optional[float] = None
    remaining_estimate: Optional[float] = None


@dataclass
class UnplannedIssue:
    key: str
    assignee: str
    requested_hours: float
    shortfall_hours: float
    reason: str


@dataclass
class IssueEfficiency:
    key: str
    estimated_hours: float
    logged_hours: float


@dataclass
class EfficiencyData:
    assignee: str
    estimated_hours: float
    logged_hours: float
    efficiency: float
    efficiency_defined: bool = True
    issue_keys: List[str] = field(default_factory=list)
    issue_details: List[IssueEfficiency] = field(default_factory=list)


@dataclass
class ProjectConfig:
    project: str
    codes: List[str] = field(default_factory=list)
    jql_filter: str = ""
    worklog_name: str = ""
    worklog_jql: str = ""
    sprint_start_date: Optional[date] = None
    excluded_statuses: List[str] = field(default_factory=list)
    excluded_parents: List[str] = field(default_factory=list)
    capacity_factor_override: Optional[float] = None
    sprint_length_days: int = 14


@dataclass
class WorklogConfig:
    worklog_name: str
    column_name: str
    issues: List[str] = field(default_factory=list)


@dataclass
class SprintUsage:
    hours: float = 0.0
    issue_keys: List[str] = field(default_factory=list)


@dataclass
class EmployeeAllocation:
    employee: str
    sprint: int
    capacity: float
    used_hours: float
    available_hours: float
    over_allocated: bool
    under_allocated: bool


@dataclass(frozen=True)
class PlanningResult:
    project: str
    current_sprint: int
    capacity_factor: float
    sprint_dates: Dict[int, Tuple[date, date]]
    sprint_capacities: List[SprintCapacity]
    planned_issues: List[PlannedIssue]
    unplanned_issues: List[UnplannedIssue]
    employee_sprint_usage: Dict[str, Dict[int, SprintUsage]]
    employee_sprint_used_hours: Dict[str, Dict[int, float]]
    sprint_assignments: Dict[int, Dict[str, List[str]]]
    efficiency: List[EfficiencyData]
    worklog_summary: Dict[str, Dict[str, float]]
    allocation: List[EmployeeAllocation]
    warnings: List[str]

    @property
    def over_committed(self) -> List[str]:
        names = {a.employee for a in self.allocation if a.over_allocated}
        names.update(u.assignee for u in self.unplanned_issues)
        return sorted(names)

    def to_dict(self) -> dict:
        data = _jsonable(asdict(self))
        data["over_committed"] = self.over_committed
        return data


def _jsonable(value):
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value
