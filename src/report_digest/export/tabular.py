"""
Tabular export views: the date x department matrix and the flat report list.
"""

from dataclasses import dataclass, field
from datetime import date

from report_digest.core.aggregation import build_matrix
from report_digest.core.filters import ReportFilter
from report_digest.core.models import ReportRecord

MISSING_MARKER = "缺"
ENTRY_SEPARATOR = "\n\n-------------------\n\n"
DATE_HEADER = "日期"

FLAT_HEADERS = ["Department", "Employee Name", "Date", "Content", "Next Steps", "Blockers", "Keywords"]
KEYWORD_SEPARATOR = "; "


@dataclass
class Table:
    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)
    title: str = "Reports"


def format_entry(record: ReportRecord) -> str:
    """One matrix cell entry: the author in brackets, then the content verbatim."""
    return f"【{record.employee_name}】\n{record.content}"


def matrix_table(records: list[ReportRecord], departments: list[str]) -> Table:
    """
    One row per date (newest first), one column per department.

    Cells without reports hold MISSING_MARKER; several reports in one cell
    are joined with ENTRY_SEPARATOR in record order.
    """
    table = Table(headers=[DATE_HEADER, *departments], title="Daily Summary")
    for row in build_matrix(records, departments):
        cells = [
            MISSING_MARKER if cell.missing else ENTRY_SEPARATOR.join(format_entry(r) for r in cell.records)
            for cell in row.cells
        ]
        table.rows.append([row.date, *cells])
    return table


def flat_table(records: list[ReportRecord]) -> Table:
    """One row per record, in the given order."""
    table = Table(headers=list(FLAT_HEADERS))
    for record in records:
        table.rows.append(
            [
                record.department,
                record.employee_name,
                record.date,
                record.content,
                record.next_steps,
                record.blockers,
                KEYWORD_SEPARATOR.join(record.matched_keywords),
            ]
        )
    return table


def export_filename(
    stem: str,
    criteria: ReportFilter | None,
    extension: str,
    today: date | None = None,
) -> str:
    """
    Build an export filename that encodes the active date filter.

    Examples:
        export_filename("dingtalk_reports", ReportFilter(date_start="2024-05-01"), "csv")
        -> "dingtalk_reports_from_2024-05-01.csv"
        export_filename("dingtalk_reports", None, "csv", today=date(2024, 5, 3))
        -> "dingtalk_reports_2024-05-03.csv"
    """
    label = criteria.label() if criteria is not None else ""
    if not label:
        label = (today or date.today()).isoformat()
    return f"{stem}_{label}.{extension.lstrip('.')}"
