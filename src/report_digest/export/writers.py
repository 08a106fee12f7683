"""
File writers for export tables.
"""

import csv
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from report_digest.observability.logger import get_logger

from .tabular import Table

logger = get_logger(__name__)

FIRST_COLUMN_WIDTH = 15
COLUMN_WIDTH = 30


def write_csv(table: Table, path: str | Path) -> Path:
    """
    Write a table as CSV with a UTF-8 byte order mark.

    Every field is quoted and embedded quotes are doubled, so multi-line
    report text survives spreadsheet import.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8-sig", newline="") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(table.headers)
        writer.writerows(table.rows)

    logger.info(f"Wrote {len(table.rows)} rows to {path}")
    return path


def write_xlsx(table: Table, path: str | Path) -> Path:
    """Write a table as a single-sheet workbook with wrapped text."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    ws = wb.active
    ws.title = table.title
    ws.append(table.headers)
    for row in table.rows:
        ws.append(row)

    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.alignment = Alignment(wrap_text=True, vertical="top")

    for column in range(1, len(table.headers) + 1):
        width = FIRST_COLUMN_WIDTH if column == 1 else COLUMN_WIDTH
        ws.column_dimensions[get_column_letter(column)].width = width

    wb.save(path)
    logger.info(f"Wrote {len(table.rows)} rows to {path}")
    return path
