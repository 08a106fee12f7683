"""
ValidationOutcome model: the tagged split of extractor output (ephemeral).
"""

from pydantic import BaseModel, Field

from .rejected_entry import RejectedEntry
from .report_record import ReportRecord


class ValidationOutcome(BaseModel):
    """
    Result of validating one extraction batch.

    Attributes:
        valid: Well-formed records, in extractor order
        rejected: Malformed entries with reasons
        warnings: Non-blocking coercions (e.g. "entry 2: department 'x' -> '后勤'")
        coerced_departments: Indices of entries whose department fell back to the default
    """

    valid: list[ReportRecord] = Field(default_factory=list)
    rejected: list[RejectedEntry] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    coerced_departments: list[int] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.valid) + len(self.rejected)
