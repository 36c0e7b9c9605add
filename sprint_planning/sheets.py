"""Turn spreadsheet rows (header row first) into planning configuration.

The rows are fetched elsewhere; these helpers only read them. Header names are
matched case-insensitively and the Dutch headers of the planning sheet are
accepted next to the English ones.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Sequence

from .models import EmployeeCapacity, ProjectConfig, WorklogConfig


logger = logging.getLogger(__name__)

Rows = Sequence[Sequence[Optional[str]]]

PROJECT_HEADERS = ("project",)
CODES_HEADERS = ("codes",)
JQL_FILTER_HEADERS = ("jql filter",)
WORKLOG_HEADERS = ("worklog",)
WORKLOG_JQL_HEADERS = ("worklog jql",)
SPRINT_DATE_HEADERS = ("sprint datum", "sprint start date")
EXCLUDED_STATUS_HEADERS = ("excluded statuses", "uitgesloten statussen")
EXCLUDED_PARENT_HEADERS = ("excluded parents", "uitgesloten parents")
CAPACITY_FACTOR_HEADERS = ("capacity factor", "capaciteitsfactor")
NAME_HEADERS = ("naam", "name", "employee")
EFFECTIVE_HOURS_HEADERS = ("effectieve uren", "effective hours")
COLUMN_HEADERS = ("column", "kolom")
ISSUES_HEADERS = ("issues",)


def _index(header: Sequence[Optional[str]], names) -> int:
    for position, value in enumerate(header):
        if value and str(value).strip().lower() in names:
            return position
    return -1


def _cell(row: Sequence[Optional[str]], position: int) -> str:
    if position < 0 or position >= len(row) or row[position] is None:
        return ""
    return str(row[position]).strip()


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _require(header, **columns) -> dict:
    positions = {name: _index(header, names) for name, names in columns.items()}
    missing = [name for name, position in positions.items() if position == -1]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")
    return positions


def parse_sheet_date(value: str) -> Optional[date]:
    """Parse d-m-yyyy (as typed in the sheet) or ISO dates."""
    value = (value or "").strip()
    if not value:
        return None
    parts = value.split("-")
    if len(parts) == 3 and len(parts[0]) <= 2:
        try:
            day, month, year = (int(part) for part in parts)
            if 1000 <= year <= 9999:
                return date(year, month, day)
        except ValueError:
            pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        logger.warning("Unparseable sprint date %r", value)
        return None


def parse_project_configs(rows: Rows) -> List[ProjectConfig]:
    if not rows:
        logger.error("No project rows available")
        return []
    header = rows[0]
    required = _require(header, project=PROJECT_HEADERS, codes=CODES_HEADERS)
    jql_filter = _index(header, JQL_FILTER_HEADERS)
    worklog = _index(header, WORKLOG_HEADERS)
    worklog_jql = _index(header, WORKLOG_JQL_HEADERS)
    sprint_date = _index(header, SPRINT_DATE_HEADERS)
    excluded_statuses = _index(header, EXCLUDED_STATUS_HEADERS)
    excluded_parents = _index(header, EXCLUDED_PARENT_HEADERS)
    capacity_factor = _index(header, CAPACITY_FACTOR_HEADERS)

    configs = []
    for row in rows[1:]:
        if not row:
            continue
        project = _cell(row, required["project"])
        if not project:
            continue
        override = _cell(row, capacity_factor)
        try:
            factor = float(override.replace(",", ".")) if override else None
        except ValueError:
            logger.warning("Ignoring capacity factor %r for project %s", override, project)
            factor = None
        configs.append(ProjectConfig(
            project=project,
            codes=_split(_cell(row, required["codes"])),
            jql_filter=_cell(row, jql_filter),
            worklog_name=_cell(row, worklog),
            worklog_jql=_cell(row, worklog_jql),
            sprint_start_date=parse_sheet_date(_cell(row, sprint_date)),
            excluded_statuses=_split(_cell(row, excluded_statuses)),
            excluded_parents=_split(_cell(row, excluded_parents)),
            capacity_factor_override=factor,
        ))
    return configs


def parse_employee_capacities(rows: Rows) -> List[EmployeeCapacity]:
    """One EmployeeCapacity per employee and listed project."""
    if not rows:
        logger.error("No employee rows available")
        return []
    header = rows[0]
    required = _require(header, name=NAME_HEADERS, effective_hours=EFFECTIVE_HOURS_HEADERS, project=PROJECT_HEADERS)

    capacities = []
    for row in rows[1:]:
        if not row:
            continue
        name = _cell(row, required["name"])
        if not name:
            continue
        hours_text = _cell(row, required["effective_hours"]).replace(",", ".")
        try:
            weekly_hours = float(hours_text or 0)
        except ValueError:
            logger.warning("Skipping %s: effective hours %r is not a number", name, hours_text)
            continue
        projects = _split(_cell(row, required["project"])) or [""]
        for project in projects:
            capacities.append(EmployeeCapacity(employee=name, project=project, weekly_hours=weekly_hours))
    return capacities


def parse_worklog_configs(rows: Rows) -> List[WorklogConfig]:
    if not rows:
        return []
    header = rows[0]
    required = _require(header, worklog=WORKLOG_HEADERS, column=COLUMN_HEADERS)
    issues = _index(header, ISSUES_HEADERS)

    configs = []
    for row in rows[1:]:
        if not row:
            continue
        worklog_name = _cell(row, required["worklog"])
        column_name = _cell(row, required["column"])
        if worklog_name and column_name:
            configs.append(WorklogConfig(
                worklog_name=worklog_name,
                column_name=column_name,
                issues=_split(_cell(row, issues)),
            ))
    return configs
