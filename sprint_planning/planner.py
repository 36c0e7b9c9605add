import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .capacity import DEFAULT_SPRINT_HORIZON, CapacityTable, build_sprint_capacities
from .dependencies import DEFAULT_IGNORED_STATUSES, DEFAULT_PRECEDENCE_RULES, DependencyGraph, PrecedenceRule
from .efficiency import calculate_efficiency, categorize_worklogs, worklog_hours_by_category
from .models import (
    EfficiencyData,
    EmployeeAllocation,
    EmployeeCapacity,
    Issue,
    PlannedIssue,
    PlanningResult,
    ProjectConfig,
    SprintUsage,
    UnplannedIssue,
    WorkLog,
    WorklogConfig,
)
from .scheduler import allocate
from .sprint_calendar import current_sprint, sprint_dates


logger = logging.getLogger(__name__)

DEFAULT_SPRINT_START_DATE = date(2025, 5, 26)


def project_issues(config: ProjectConfig, issues: Iterable[Issue]) -> List[Issue]:
    if not config.codes:
        return list(issues)
    codes = set(config.codes)
    return [issue for issue in issues if issue.project_key in codes]


def eligible_issues(config: ProjectConfig, issues: Iterable[Issue]) -> List[Issue]:
    """Issues of the project that are still open for planning."""
    excluded_statuses = set(config.excluded_statuses)
    excluded_parents = set(config.excluded_parents)
    eligible = []
    for issue in project_issues(config, issues):
        if issue.status in excluded_statuses:
            continue
        if issue.parent_key and issue.parent_key in excluded_parents:
            continue
        eligible.append(issue)
    return eligible


def _allocation_rows(
    table: CapacityTable,
    project: str,
    current: int,
    last_sprint: int,
    short_employees,
) -> List[EmployeeAllocation]:
    rows = []
    for row in table.rows():
        if row.project != project or row.sprint < current or row.sprint > last_sprint:
            continue
        used = table.used_hours(row.employee, row.sprint, row.project)
        rows.append(EmployeeAllocation(
            employee=row.employee,
            sprint=row.sprint,
            capacity=row.capacity,
            used_hours=used,
            available_hours=row.available_capacity,
            over_allocated=row.available_capacity <= 0 and row.employee in short_employees,
            under_allocated=row.available_capacity > 0,
        ))
    return rows


def compose_result(
    config: ProjectConfig,
    current: int,
    factor: float,
    dates: Dict[int, Tuple[date, date]],
    table: CapacityTable,
    planned: List[PlannedIssue],
    unplanned: List[UnplannedIssue],
    efficiency: List[EfficiencyData],
    worklogs: List[WorkLog],
    warnings: List[str],
) -> PlanningResult:
    logged_per_issue: Dict[str, float] = defaultdict(float)
    for log in worklogs:
        logged_per_issue[log.issue_key] += log.hours
    planned = [
        replace(p, worklog_hours=round(logged_per_issue[p.key], 2)) if p.key in logged_per_issue else p
        for p in planned
    ]

    usage: Dict[str, Dict[int, SprintUsage]] = defaultdict(dict)
    assignments: Dict[int, Dict[str, List[str]]] = defaultdict(lambda: defaultdict(list))
    for p in planned:
        slot = usage[p.assignee].setdefault(p.sprint, SprintUsage())
        slot.hours = round(slot.hours + p.hours, 6)
        if p.key not in slot.issue_keys:
            slot.issue_keys.append(p.key)
        if p.key not in assignments[p.sprint][p.assignee]:
            assignments[p.sprint][p.assignee].append(p.key)

    used_hours = {
        employee: {sprint: slot.hours for sprint, slot in sprints.items()}
        for employee, sprints in usage.items()
    }
    last_sprint = max([current] + [p.sprint for p in planned])
    short_employees = {u.assignee for u in unplanned}

    return PlanningResult(
        project=config.project,
        current_sprint=current,
        capacity_factor=factor,
        sprint_dates=dates,
        sprint_capacities=[row for row in table.rows() if row.project == config.project],
        planned_issues=planned,
        unplanned_issues=list(unplanned),
        employee_sprint_usage=dict(usage),
        employee_sprint_used_hours=used_hours,
        sprint_assignments={sprint: dict(per_employee) for sprint, per_employee in sorted(assignments.items())},
        efficiency=efficiency,
        worklog_summary=worklog_hours_by_category(worklogs),
        allocation=_allocation_rows(table, config.project, current, last_sprint, short_employees),
        warnings=list(warnings),
    )


def calculate_planning(
    config: ProjectConfig,
    issues: Iterable[Issue],
    employees: Iterable[EmployeeCapacity],
    worklogs: Iterable[WorkLog] = (),
    worklog_configs: Iterable[WorklogConfig] = (),
    today: Optional[date] = None,
    horizon: int = DEFAULT_SPRINT_HORIZON,
    rules: Sequence[PrecedenceRule] = DEFAULT_PRECEDENCE_RULES,
    ignored_statuses=DEFAULT_IGNORED_STATUSES,
    default_start_date: Optional[date] = None,
    efficiency_start: Optional[datetime] = None,
    efficiency_end: Optional[datetime] = None,
) -> PlanningResult:
    """Plan one project's backlog into sprints.

    Always returns a result; data problems show up as warnings and unplanned
    issues.
    """
    today = today or date.today()
    issues = list(issues)
    project_start = config.sprint_start_date or default_start_date or DEFAULT_SPRINT_START_DATE
    running = current_sprint(project_start, today, config.sprint_length_days)
    logger.info("Planning project %s from %s, current sprint %d", config.project, project_start, running.index)

    project_employees = [e for e in employees if e.project == config.project]
    if not project_employees:
        logger.warning("No employee capacity configured for project %s", config.project)
    table, factor = build_sprint_capacities(
        project_employees,
        project_start,
        today=today,
        horizon=horizon,
        sprint_length_days=config.sprint_length_days,
        capacity_factor_override=config.capacity_factor_override,
    )

    candidates = eligible_issues(config, issues)
    graph = DependencyGraph.build(candidates, rules, ignored_statuses)
    warnings = []
    for cycle in graph.find_cycles():
        message = f"Dependency cycle between {', '.join(cycle)}"
        logger.warning(message)
        warnings.append(message)

    allocation = allocate(
        candidates,
        table,
        graph,
        running.index,
        config.project,
        horizon,
        project_start=project_start,
        sprint_length_days=config.sprint_length_days,
    )
    warnings.extend(allocation.warnings)
    logger.info(
        "Project %s: %d planned records, %d unplanned issues",
        config.project,
        len(allocation.planned),
        len(allocation.unplanned),
    )

    worklogs = list(worklogs)
    worklog_configs = list(worklog_configs)
    if worklog_configs:
        worklogs = categorize_worklogs(worklogs, worklog_configs)
    efficiency = calculate_efficiency(project_issues(config, issues), worklogs, efficiency_start, efficiency_end)

    return compose_result(
        config,
        running.index,
        factor,
        sprint_dates(project_start, running.index + horizon - 1, config.sprint_length_days),
        table,
        allocation.planned,
        allocation.unplanned,
        efficiency,
        worklogs,
        warnings,
    )
