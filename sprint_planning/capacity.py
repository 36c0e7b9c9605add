import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .models import EmployeeCapacity, SprintCapacity
from .sprint_calendar import (
    DEFAULT_SPRINT_LENGTH_DAYS,
    capacity_factor,
    current_sprint,
    round_half_up,
    sprint_window,
    sprint_workdays,
)


logger = logging.getLogger(__name__)

DEFAULT_SPRINT_HORIZON = 50

CapacityKey = Tuple[str, int, str]


class CapacityTable:
    """Sprint capacity rows keyed by (employee, sprint, project).

    One table belongs to one planning run; the allocator mutates it in place.
    """

    def __init__(self, rows: Iterable[SprintCapacity] = ()):
        self._rows: Dict[CapacityKey, SprintCapacity] = {}
        self._used: Dict[CapacityKey, float] = {}
        for row in rows:
            self.add(row)

    def add(self, row: SprintCapacity):
        key = (row.employee, row.sprint, row.project)
        self._rows[key] = row
        self._used.setdefault(key, 0.0)

    def get(self, employee: str, sprint: int, project: str) -> Optional[SprintCapacity]:
        return self._rows.get((employee, sprint, project))

    def available(self, employee: str, sprint: int, project: str) -> Optional[float]:
        row = self.get(employee, sprint, project)
        if row is None:
            return None
        return row.available_capacity

    def consume(self, employee: str, sprint: int, project: str, hours: float) -> float:
        key = (employee, sprint, project)
        row = self._rows.get(key)
        if row is None:
            raise KeyError(key)
        if hours > row.available_capacity:
            raise ValueError(
                f"Cannot take {hours}h from {employee} in sprint {sprint}: only {row.available_capacity}h left"
            )
        row.available_capacity = round(row.available_capacity - hours, 6)
        self._used[key] = round(self._used[key] + hours, 6)
        return row.available_capacity

    def used_hours(self, employee: str, sprint: int, project: str) -> float:
        return self._used.get((employee, sprint, project), 0.0)

    def has_employee(self, employee: str, project: str) -> bool:
        return any(e == employee and p == project for e, _, p in self._rows)

    def rows(self) -> List[SprintCapacity]:
        return sorted(self._rows.values(), key=lambda r: (r.sprint, r.project, r.employee))

    def copy(self) -> "CapacityTable":
        table = CapacityTable(
            SprintCapacity(
                employee=row.employee,
                sprint=row.sprint,
                project=row.project,
                capacity=row.capacity,
                available_capacity=row.available_capacity,
                start_date=row.start_date,
            )
            for row in self._rows.values()
        )
        table._used = dict(self._used)
        return table

    def __len__(self):
        return len(self._rows)


def build_sprint_capacities(
    employees: List[EmployeeCapacity],
    project_start: date,
    today: Optional[date] = None,
    horizon: int = DEFAULT_SPRINT_HORIZON,
    sprint_length_days: int = DEFAULT_SPRINT_LENGTH_DAYS,
    capacity_factor_override: Optional[float] = None,
) -> Tuple[CapacityTable, float]:
    """Seed capacity rows from sprint 1 through horizon sprints past the running one.

    Finished sprints have no available capacity, the running sprint is scaled by
    the capacity factor, later sprints get their nominal capacity. Sprint
    indices are unbounded; the horizon only limits how far ahead rows exist.
    """
    today = today or date.today()
    running = current_sprint(project_start, today, sprint_length_days)
    if capacity_factor_override is not None:
        factor = min(1.0, max(0.0, capacity_factor_override))
    elif running.contains(today):
        factor = capacity_factor(today, running.end, sprint_workdays(running))
    else:
        factor = 1.0

    table = CapacityTable()
    for employee in employees:
        nominal = employee.sprint_capacity(sprint_length_days)
        if nominal <= 0:
            logger.warning("Employee %s has no effective hours for project %s", employee.employee, employee.project)
        for index in range(1, running.index + horizon):
            window = sprint_window(project_start, index, sprint_length_days)
            if index < running.index:
                available = 0
            elif index == running.index:
                available = round_half_up(nominal * factor)
            else:
                available = nominal
            table.add(SprintCapacity(
                employee=employee.employee,
                sprint=index,
                project=employee.project,
                capacity=nominal,
                available_capacity=max(0, available),
                start_date=window.start,
            ))
    return table, factor
