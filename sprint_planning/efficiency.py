from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .models import (
    CATEGORY_DEVELOPMENT,
    CATEGORY_OTHER,
    EfficiencyData,
    Issue,
    IssueEfficiency,
    WorkLog,
    WorklogConfig,
)
from .sprint_calendar import naive_utc


PRODUCTIVE_CATEGORIES = frozenset({CATEGORY_DEVELOPMENT})


def categorize_worklogs(worklogs: Iterable[WorkLog], worklog_configs: Iterable[WorklogConfig]) -> List[WorkLog]:
    """Tag worklogs: issues listed under a worklog column are overhead, the rest is development."""
    overhead = set()
    for config in worklog_configs:
        overhead.update(config.issues)

    categorized = []
    for log in worklogs:
        category = CATEGORY_OTHER if log.issue_key in overhead else CATEGORY_DEVELOPMENT
        categorized.append(WorkLog(
            issue_key=log.issue_key,
            author=log.author,
            hours=log.hours,
            started=log.started,
            category=category,
            comment=log.comment,
        ))
    return categorized


def worklog_hours_by_category(worklogs: Iterable[WorkLog]) -> Dict[str, Dict[str, float]]:
    totals: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for log in worklogs:
        totals[log.author][log.category or "uncategorized"] += log.hours
    return {author: dict(categories) for author, categories in totals.items()}


def _in_window(log: WorkLog, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if log.started is None:
        return start is None and end is None
    started = naive_utc(log.started)
    if start is not None and started < naive_utc(start):
        return False
    if end is not None and started > naive_utc(end):
        return False
    return True


def calculate_efficiency(
    issues: Iterable[Issue],
    worklogs: Iterable[WorkLog],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    productive_categories=PRODUCTIVE_CATEGORIES,
) -> List[EfficiencyData]:
    """Estimated vs. logged hours per assignee.

    Estimates come from the original estimate of each issue attributed to the
    assignee. Logged hours are the author's productive worklogs inside the
    window; uncategorized worklogs count as productive. An assignee without
    estimates gets efficiency 0 with ``efficiency_defined`` False.
    """
    issues_by_assignee: Dict[str, List[Issue]] = defaultdict(list)
    for issue in issues:
        issues_by_assignee[issue.assignee].append(issue)

    logged_by_author: Dict[str, float] = defaultdict(float)
    logged_by_author_issue: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for log in worklogs:
        if log.category is not None and log.category not in productive_categories:
            continue
        if not _in_window(log, start, end):
            continue
        logged_by_author[log.author] += log.hours
        logged_by_author_issue[log.author][log.issue_key] += log.hours

    efficiency_data = []
    for assignee in sorted(set(issues_by_assignee) | set(logged_by_author)):
        details = []
        estimated = 0.0
        for issue in issues_by_assignee.get(assignee, []):
            issue_estimate = issue.original_estimate_hours or 0.0
            estimated += issue_estimate
            details.append(IssueEfficiency(
                key=issue.key,
                estimated_hours=issue_estimate,
                logged_hours=logged_by_author_issue[assignee].get(issue.key, 0.0),
            ))
        logged = logged_by_author.get(assignee, 0.0)
        defined = estimated > 0
        efficiency_data.append(EfficiencyData(
            assignee=assignee,
            estimated_hours=round(estimated, 2),
            logged_hours=round(logged, 2),
            efficiency=round(logged / estimated, 4) if defined else 0.0,
            efficiency_defined=defined,
            issue_keys=[d.key for d in details],
            issue_details=details,
        ))
    return efficiency_data
