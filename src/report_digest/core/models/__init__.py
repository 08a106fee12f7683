"""
Core data models for the report digest.

All models use Pydantic for runtime validation and type safety.
"""

from .rejected_entry import RejectedEntry
from .report_record import ReportRecord
from .validation_outcome import ValidationOutcome
from .views import (
    DepartmentCount,
    DigestStats,
    MatrixCell,
    MatrixRow,
    OperationStatus,
    WorkloadEntry,
)

__all__ = [
    "ReportRecord",
    "RejectedEntry",
    "ValidationOutcome",
    "MatrixCell",
    "MatrixRow",
    "DepartmentCount",
    "DigestStats",
    "WorkloadEntry",
    "OperationStatus",
]
