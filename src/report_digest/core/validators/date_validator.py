"""
ReportDateValidator - parses report dates into canonical YYYY-MM-DD form.
"""

import re
from datetime import date, datetime
from typing import Any, Dict

from .base_validator import BaseValidator, ValidationError

# 2024-01-05, 2024/1/5, 2024.01.05, 2024年1月5日, optionally followed by a time
FULL_DATE_PATTERN = re.compile(
    r"^\s*(\d{4})\s*[-/.年]\s*(\d{1,2})\s*[-/.月]\s*(\d{1,2})\s*[日号]?(?:[T\s].*)?$"
)
# 1-5, 01/05, 1.5, 1月5日
YEARLESS_DATE_PATTERN = re.compile(
    r"^\s*(\d{1,2})\s*[-/.月]\s*(\d{1,2})\s*[日号]?\s*$"
)


class ReportDateValidator(BaseValidator):
    """
    Validates a report date and returns it as YYYY-MM-DD.

    Dates without a year take the current year at extraction time. The
    reference day can be pinned with the "today" parameter.

    Fails if:
    - Field is missing or null
    - Value does not look like a date
    - Value names a day that does not exist (e.g. 2024-02-30)
    """

    def validate(self, value: Any, entry: Dict[str, Any]) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(
                rule_name="report_date",
                field_name=self.field_name,
                message="Field is missing or null"
            )

        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()

        if not isinstance(value, str):
            raise ValidationError(
                rule_name="report_date",
                field_name=self.field_name,
                message=f"Field must be text, got {type(value).__name__}"
            )

        match = FULL_DATE_PATTERN.match(value)
        if match:
            year, month, day = (int(part) for part in match.groups())
        else:
            match = YEARLESS_DATE_PATTERN.match(value)
            if not match:
                raise ValidationError(
                    rule_name="report_date",
                    field_name=self.field_name,
                    message=f"'{value}' is not a recognizable date"
                )
            year = self._today().year
            month, day = (int(part) for part in match.groups())

        try:
            return date(year, month, day).isoformat()
        except ValueError:
            raise ValidationError(
                rule_name="report_date",
                field_name=self.field_name,
                message=f"'{value}' is not a valid calendar date"
            )

    def _today(self) -> date:
        return self.parameters.get("today") or date.today()

    @property
    def rule_type(self) -> str:
        return "report_date"
