"""
Export of the record set as CSV or XLSX tables.
"""

from .tabular import (
    ENTRY_SEPARATOR,
    FLAT_HEADERS,
    MISSING_MARKER,
    Table,
    export_filename,
    flat_table,
    matrix_table,
)
from .writers import write_csv, write_xlsx

__all__ = [
    "ENTRY_SEPARATOR",
    "FLAT_HEADERS",
    "MISSING_MARKER",
    "Table",
    "export_filename",
    "flat_table",
    "matrix_table",
    "write_csv",
    "write_xlsx",
]
