"""
Aggregation engine: derived views over a record-set snapshot.

All functions are pure and deterministic. The three count views agree on
the total: sum of matrix cells == sum of department counts == len(records).
"""

from typing import Iterable

from report_digest.core.identity import canonical_key, resolve_identities
from report_digest.core.models import (
    DepartmentCount,
    MatrixCell,
    MatrixRow,
    ReportRecord,
    WorkloadEntry,
)


def sort_for_display(records: Iterable[ReportRecord]) -> list[ReportRecord]:
    """Date descending; records of the same date keep their insertion order."""
    # Canonical YYYY-MM-DD strings sort chronologically; sorted() is stable with reverse=True.
    return sorted(records, key=lambda record: record.date, reverse=True)


def build_matrix(records: Iterable[ReportRecord], departments: list[str]) -> list[MatrixRow]:
    """
    Partition records by date (descending), then by department.

    Every configured department gets a cell on every date, so a department
    with no report that day shows up as an explicit missing cell.

    Raises:
        ValueError: If a record's department is not in the enumeration
    """
    grouped: dict[str, dict[str, list[ReportRecord]]] = {}
    for record in records:
        if record.department not in departments:
            raise ValueError(
                f"Record department '{record.department}' is not one of {departments}"
            )
        by_department = grouped.setdefault(record.date, {})
        by_department.setdefault(record.department, []).append(record)

    rows = []
    for report_date in sorted(grouped, reverse=True):
        by_department = grouped[report_date]
        rows.append(
            MatrixRow(
                date=report_date,
                cells=[
                    MatrixCell(department=department, records=by_department.get(department, []))
                    for department in departments
                ],
            )
        )
    return rows


def department_distribution(
    records: Iterable[ReportRecord], departments: list[str]
) -> list[DepartmentCount]:
    """
    Count records per department, descending; ties follow the enumeration order.

    Departments without records are omitted.
    """
    counts: dict[str, int] = {}
    for record in records:
        counts[record.department] = counts.get(record.department, 0) + 1

    order = {department: position for position, department in enumerate(departments)}
    ranked = sorted(
        counts.items(),
        key=lambda item: (-item[1], order.get(item[0], len(order)), item[0]),
    )
    return [DepartmentCount(department=name, count=count) for name, count in ranked]


def workload(records: Iterable[ReportRecord]) -> list[WorkloadEntry]:
    """
    Count records per canonical identity, descending.

    Each entry carries the most informative name variant seen. Ties keep
    the order in which identities first appear.
    """
    records = list(records)
    names = resolve_identities(records)
    counts: dict[str, int] = {key: 0 for key in names}
    for record in records:
        counts[canonical_key(record.employee_name)] += 1

    entries = [
        WorkloadEntry(canonical_key=key, display_name=names[key], count=count)
        for key, count in counts.items()
    ]
    entries.sort(key=lambda entry: entry.count, reverse=True)
    return entries


def matrix_total(rows: list[MatrixRow]) -> int:
    """Sum of all cell counts in a matrix."""
    return sum(cell.count for row in rows for cell in row.cells)
