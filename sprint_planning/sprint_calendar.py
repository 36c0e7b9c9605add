import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional, Tuple


DEFAULT_SPRINT_LENGTH_DAYS = 14


@dataclass
class SprintWindow:
    index: int
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def workdays_between(start: date, end: date) -> int:
    """Count Monday-Friday dates in the half-open interval [start, end)."""
    if end <= start:
        return 0
    total_days = (end - start).days
    full_weeks, rest = divmod(total_days, 7)
    workdays = full_weeks * 5
    weekday = start.weekday()
    for offset in range(rest):
        if (weekday + offset) % 7 < 5:
            workdays += 1
    return workdays


def naive_utc(value: datetime) -> datetime:
    """Comparable naive timestamp: aware values are converted to UTC first."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def sprint_window(project_start: date, index: int, sprint_length_days: int = DEFAULT_SPRINT_LENGTH_DAYS) -> SprintWindow:
    start = project_start + timedelta(days=(index - 1) * sprint_length_days)
    return SprintWindow(index=index, start=start, end=start + timedelta(days=sprint_length_days - 1))


def current_sprint(
    project_start: date,
    today: Optional[date] = None,
    sprint_length_days: int = DEFAULT_SPRINT_LENGTH_DAYS,
) -> SprintWindow:
    """Return the sprint containing today. Before the project starts this is sprint 1."""
    today = today or date.today()
    days_elapsed = (today - project_start).days
    if sprint_length_days == DEFAULT_SPRINT_LENGTH_DAYS:
        weeks_elapsed = days_elapsed // 7
        index = weeks_elapsed // 2 + 1
    else:
        index = days_elapsed // sprint_length_days + 1
    return sprint_window(project_start, max(1, index), sprint_length_days)


def sprint_index_for(project_start: date, day: date, sprint_length_days: int = DEFAULT_SPRINT_LENGTH_DAYS) -> int:
    """Index of the sprint containing day; days before the project start map to sprint 1."""
    return current_sprint(project_start, day, sprint_length_days).index


def sprint_dates(
    project_start: date,
    last_sprint: int,
    sprint_length_days: int = DEFAULT_SPRINT_LENGTH_DAYS,
) -> Dict[int, Tuple[date, date]]:
    """Start and end date of sprints 1..last_sprint."""
    dates = {}
    for index in range(1, last_sprint + 1):
        window = sprint_window(project_start, index, sprint_length_days)
        dates[index] = (window.start, window.end)
    return dates


def sprint_workdays(window: SprintWindow) -> int:
    return workdays_between(window.start, window.end + timedelta(days=1))


def capacity_factor(now: date, sprint_end: date, total_workdays: int) -> float:
    """Share of a sprint's workdays left from now through sprint_end (inclusive)."""
    if total_workdays <= 0:
        return 0.0
    remaining = workdays_between(now, sprint_end + timedelta(days=1))
    return min(1.0, max(0.0, remaining / total_workdays))
