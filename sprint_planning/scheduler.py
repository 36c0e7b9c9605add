import heapq
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from .capacity import DEFAULT_SPRINT_HORIZON, CapacityTable
from .dependencies import DependencyGraph
from .models import Issue, PlannedIssue, UnplannedIssue
from .sprint_calendar import DEFAULT_SPRINT_LENGTH_DAYS, naive_utc, sprint_index_for


logger = logging.getLogger(__name__)

PRIORITY_ORDER = {
    "blocker": 0,
    "highest": 0,
    "critical": 1,
    "high": 2,
    "major": 3,
    "medium": 3,
    "minor": 4,
    "low": 5,
    "trivial": 6,
    "lowest": 6,
}

REASON_NO_CAPACITY = "no_capacity"
REASON_HORIZON_EXHAUSTED = "horizon_exhausted"

_LATEST = datetime.max


def priority_rank(priority: str) -> int:
    if not priority:
        return 999
    return PRIORITY_ORDER.get(priority.lower(), 999)


def issue_sort_key(issue: Issue) -> Tuple[int, datetime, str]:
    """Priority descending, then oldest first, then key."""
    created = naive_utc(issue.created) if issue.created else _LATEST
    return (priority_rank(issue.priority), created, issue.key)


@dataclass
class AllocationResult:
    planned: List[PlannedIssue] = field(default_factory=list)
    unplanned: List[UnplannedIssue] = field(default_factory=list)
    sprint_of: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


def dependency_order(issues: List[Issue], graph: DependencyGraph) -> Tuple[List[Issue], List[str]]:
    """Topological order over the snapshot, ties broken by issue_sort_key.

    When only blocked issues remain a cycle exists; the best-ranked blocked
    issue is released and the break is reported.
    """
    issue_map = {issue.key: issue for issue in issues}
    rank = {issue.key: issue_sort_key(issue) for issue in issues}
    indegree = {key: 0 for key in issue_map}
    forward = defaultdict(list)
    for key in issue_map:
        for dep in graph.predecessors_for(key):
            if dep not in issue_map or dep == key:
                continue
            forward[dep].append(key)
            indegree[key] += 1

    queue = [(rank[key], key) for key, count in indegree.items() if count == 0]
    heapq.heapify(queue)
    order = []
    done = set()
    warnings = []
    while len(order) < len(issue_map):
        if not queue:
            blocked = min((k for k in issue_map if k not in done), key=lambda k: rank[k])
            message = f"Dependency cycle through {blocked}; scheduling it before its remaining predecessors"
            logger.warning(message)
            warnings.append(message)
            indegree[blocked] = 0
            heapq.heappush(queue, (rank[blocked], blocked))
        _, current = heapq.heappop(queue)
        if current in done:
            continue
        done.add(current)
        order.append(issue_map[current])
        for nxt in forward.get(current, []):
            if nxt in done:
                continue
            indegree[nxt] -= 1
            if indegree[nxt] == 0:
                heapq.heappush(queue, (rank[nxt], nxt))
    return order, warnings


def allocate(
    issues: List[Issue],
    table: CapacityTable,
    graph: DependencyGraph,
    current_sprint: int,
    project: str,
    horizon: int = DEFAULT_SPRINT_HORIZON,
    project_start: Optional[date] = None,
    sprint_length_days: int = DEFAULT_SPRINT_LENGTH_DAYS,
) -> AllocationResult:
    """Greedy, dependency-respecting fill of the capacity table.

    Each issue is placed once, in dependency-then-priority order, starting at
    the latest of the current sprint, its predecessors' last sprint and (when
    project_start is given) the sprint containing its due date. Hours that do
    not fit spill into the following sprints for the same assignee, up to
    horizon sprints from the current one.
    """
    order, warnings = dependency_order(issues, graph)
    result = AllocationResult(warnings=list(warnings))
    last_sprint = current_sprint + horizon - 1

    for issue in order:
        remaining = round(issue.remaining_hours, 6)
        if remaining <= 0:
            continue

        floor = current_sprint
        for dep in graph.predecessors_for(issue.key):
            if dep in result.sprint_of:
                floor = max(floor, result.sprint_of[dep])
        if issue.due_date and project_start:
            floor = max(floor, sprint_index_for(project_start, issue.due_date, sprint_length_days))

        assignee = issue.assignee
        for sprint in range(floor, last_sprint + 1):
            available = table.available(assignee, sprint, project)
            if available is None:
                continue
            hours = min(remaining, available)
            if hours <= 0:
                continue
            table.consume(assignee, sprint, project, hours)
            remaining = round(remaining - hours, 6)
            result.planned.append(PlannedIssue(
                key=issue.key,
                sprint=sprint,
                hours=hours,
                assignee=assignee,
                project=project,
                summary=issue.summary,
                remaining_estimate=issue.remaining_estimate_hours,
            ))
            result.sprint_of[issue.key] = sprint
            logger.debug("Planned %s in sprint %d for %s (%sh)", issue.key, sprint, assignee, hours)
            if remaining <= 0:
                break

        if remaining > 0:
            reason = REASON_HORIZON_EXHAUSTED if table.has_employee(assignee, project) else REASON_NO_CAPACITY
            result.unplanned.append(UnplannedIssue(
                key=issue.key,
                assignee=assignee,
                requested_hours=round(issue.remaining_hours, 6),
                shortfall_hours=remaining,
                reason=reason,
            ))
            message = f"{issue.key}: {remaining}h for {assignee} could not be planned ({reason})"
            logger.warning(message)
            result.warnings.append(message)

    return result
