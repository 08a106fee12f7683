"""
Filter and query layer over the authoritative record set.
"""

from typing import Iterable

from pydantic import BaseModel, Field, model_validator


class ReportFilter(BaseModel):
    """
    Display/export filter. Every criterion is optional; criteria combine with AND.

    Attributes:
        date_start: Inclusive lower bound (YYYY-MM-DD)
        date_end: Inclusive upper bound (YYYY-MM-DD)
        only_matched_keywords: Keep only records with at least one matched keyword
        department: Keep only one department
    """

    date_start: str | None = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    date_end: str | None = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    only_matched_keywords: bool = False
    department: str | None = None

    @model_validator(mode="after")
    def check_range_order(self):
        if self.date_start and self.date_end and self.date_start > self.date_end:
            raise ValueError(f"date_start {self.date_start} is after date_end {self.date_end}")
        return self

    @property
    def is_empty(self) -> bool:
        return not (self.date_start or self.date_end or self.only_matched_keywords or self.department)

    def matches(self, record) -> bool:
        if self.date_start and record.date < self.date_start:
            return False
        if self.date_end and record.date > self.date_end:
            return False
        if self.only_matched_keywords and not record.matched_keywords:
            return False
        if self.department and record.department != self.department:
            return False
        return True

    def label(self) -> str:
        """Short description of the active date range, used in export filenames."""
        if self.date_start and self.date_end:
            return f"{self.date_start}_to_{self.date_end}"
        if self.date_start:
            return f"from_{self.date_start}"
        if self.date_end:
            return f"until_{self.date_end}"
        return ""


def filter_records(records: Iterable, criteria: ReportFilter | None = None) -> list:
    """
    Return the records passing the filter, in their original order.

    Never mutates its input; the result is a new list.
    """
    if criteria is None or criteria.is_empty:
        return list(records)
    return [record for record in records if criteria.matches(record)]
