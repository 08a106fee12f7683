"""
RejectedEntry model representing extractor output that failed validation.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class RejectedEntry(BaseModel):
    """
    An extractor entry dropped by the record validator, with the reasons.

    Attributes:
        index: Position of the entry in the extractor output
        raw_entry: The entry exactly as the extractor returned it
        failed_rules: Names of the rules that failed
        error_messages: Corresponding error messages
    """

    index: int = Field(..., ge=0)
    raw_entry: Any = None
    failed_rules: list[str] = Field(..., min_length=1)
    error_messages: list[str] = Field(..., min_length=1)

    @field_validator('error_messages')
    @classmethod
    def check_arrays_same_length(cls, v, info):
        """Validate that failed_rules and error_messages have the same length."""
        failed_rules = info.data.get('failed_rules', [])
        if len(v) != len(failed_rules):
            raise ValueError(
                f"error_messages length ({len(v)}) must match failed_rules length ({len(failed_rules)})"
            )
        return v

    def reason(self) -> str:
        """One-line summary suitable for a warning message."""
        return "; ".join(self.error_messages)

    class Config:
        json_schema_extra = {
            "example": {
                "index": 3,
                "raw_entry": {"employeeName": "", "reportDate": "2024-13-01"},
                "failed_rules": ["employee_name_required", "report_date"],
                "error_messages": [
                    "Field value is empty string",
                    "'2024-13-01' is not a valid calendar date",
                ],
            }
        }
