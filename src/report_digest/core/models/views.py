"""
Derived view models produced by the aggregation engine and the service layer.
"""

from typing import Literal

from pydantic import BaseModel, Field

from .report_record import ReportRecord


class MatrixCell(BaseModel):
    """Records of one department on one date. An empty cell is an explicit gap."""

    department: str
    records: list[ReportRecord] = Field(default_factory=list)

    @property
    def missing(self) -> bool:
        return not self.records

    @property
    def count(self) -> int:
        return len(self.records)


class MatrixRow(BaseModel):
    """One date of the date x department matrix, cells in department order."""

    date: str
    cells: list[MatrixCell]

    def cell(self, department: str) -> MatrixCell:
        for cell in self.cells:
            if cell.department == department:
                return cell
        raise KeyError(department)


class DepartmentCount(BaseModel):
    department: str
    count: int = Field(..., ge=0)


class WorkloadEntry(BaseModel):
    """Report count for one canonical identity."""

    canonical_key: str
    display_name: str
    count: int = Field(..., ge=0)


class DigestStats(BaseModel):
    """Summary counts over one record-set snapshot."""

    total: int = Field(..., ge=0)
    departments: list[DepartmentCount] = Field(default_factory=list)
    workload: list[WorkloadEntry] = Field(default_factory=list)


class OperationStatus(BaseModel):
    """
    User-visible outcome of a service operation.

    Attributes:
        ok: Whether the operation completed
        error_kind: Error taxonomy kind (extraction, persistence, storage_capacity, ...)
        message: Human readable message
        retryable: Whether retrying the same operation may succeed
        added: Records added or merged by an ingest
        rejected: Entries dropped by validation
        warnings: Non-blocking notes (rejections, coercions)
        output_path: File written by an export
    """

    ok: bool
    error_kind: Literal[
        "extraction", "persistence", "storage_capacity", "authorization", "configuration", "error"
    ] | None = None
    message: str = ""
    retryable: bool = False
    added: int = 0
    rejected: int = 0
    warnings: list[str] = Field(default_factory=list)
    output_path: str | None = None
