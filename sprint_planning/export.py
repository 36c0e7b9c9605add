import io

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from .models import PlanningResult


HEADER_FILL = PatternFill(start_color='107C41', end_color='107C41', fill_type='solid')
HEADER_FONT = Font(bold=True, color='FFFFFF', size=12)
HEADER_ALIGNMENT = Alignment(horizontal='center', vertical='center')
OVER_FILL = PatternFill(start_color='F8D7DA', end_color='F8D7DA', fill_type='solid')


def _write_header(ws, headers, widths):
    for col_num, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_num)
        cell.value = header
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = HEADER_ALIGNMENT
    for letter, width in widths.items():
        ws.column_dimensions[letter].width = width


def planning_workbook(planning: PlanningResult) -> Workbook:
    """Planning, capacity, unplanned and efficiency sheets for one project."""
    wb = Workbook()

    ws = wb.active
    ws.title = 'Planning'
    _write_header(ws, ['Sprint', 'Start', 'Key', 'Summary', 'Assignee', 'Hours'],
                  {'A': 10, 'B': 14, 'C': 15, 'D': 60, 'E': 25, 'F': 10})
    for row_num, planned in enumerate(planning.planned_issues, 2):
        start = planning.sprint_dates.get(planned.sprint, (None, None))[0]
        ws.cell(row=row_num, column=1, value=planned.sprint)
        ws.cell(row=row_num, column=2, value=start.isoformat() if start else '')
        ws.cell(row=row_num, column=3, value=planned.key)
        ws.cell(row=row_num, column=4, value=planned.summary or '')
        ws.cell(row=row_num, column=5, value=planned.assignee)
        ws.cell(row=row_num, column=6, value=planned.hours)

    ws = wb.create_sheet('Capacity')
    _write_header(ws, ['Sprint', 'Project', 'Employee', 'Capacity', 'Used', 'Available'],
                  {'A': 10, 'B': 20, 'C': 25, 'D': 12, 'E': 12, 'F': 12})
    for row_num, row in enumerate(planning.allocation, 2):
        values = [row.sprint, planning.project, row.employee, row.capacity, row.used_hours, row.available_hours]
        for col_num, value in enumerate(values, 1):
            cell = ws.cell(row=row_num, column=col_num, value=value)
            if row.over_allocated:
                cell.fill = OVER_FILL

    ws = wb.create_sheet('Unplanned')
    _write_header(ws, ['Key', 'Assignee', 'Requested', 'Shortfall', 'Reason'],
                  {'A': 15, 'B': 25, 'C': 12, 'D': 12, 'E': 20})
    for row_num, unplanned in enumerate(planning.unplanned_issues, 2):
        ws.cell(row=row_num, column=1, value=unplanned.key)
        ws.cell(row=row_num, column=2, value=unplanned.assignee)
        ws.cell(row=row_num, column=3, value=unplanned.requested_hours)
        ws.cell(row=row_num, column=4, value=unplanned.shortfall_hours)
        ws.cell(row=row_num, column=5, value=unplanned.reason)

    ws = wb.create_sheet('Efficiency')
    _write_header(ws, ['Assignee', 'Estimated', 'Logged', 'Efficiency'],
                  {'A': 25, 'B': 12, 'C': 12, 'D': 12})
    for row_num, data in enumerate(planning.efficiency, 2):
        ws.cell(row=row_num, column=1, value=data.assignee)
        ws.cell(row=row_num, column=2, value=data.estimated_hours)
        ws.cell(row=row_num, column=3, value=data.logged_hours)
        ws.cell(row=row_num, column=4, value=data.efficiency if data.efficiency_defined else None)
        ws.cell(row=row_num, column=4).alignment = Alignment(horizontal='center')

    return wb


def planning_to_xlsx(planning: PlanningResult) -> io.BytesIO:
    output = io.BytesIO()
    planning_workbook(planning).save(output)
    output.seek(0)
    return output
