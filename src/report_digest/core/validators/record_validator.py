"""
Record validator: the strict boundary between extractor output and records.

Applies one validator per report field, accumulates failures per entry, and
splits the batch into well-formed ReportRecords and RejectedEntries.
"""

from datetime import date
from typing import Any

from report_digest.core.config import DigestConfig
from report_digest.core.keywords import match_keywords
from report_digest.core.models import RejectedEntry, ReportRecord, ValidationOutcome

from .base_validator import BaseValidator, ValidationError
from .date_validator import ReportDateValidator
from .department_validator import DepartmentValidator
from .required_field_validator import RequiredFieldValidator
from .verbatim_text_validator import VerbatimTextValidator


class RecordValidator:
    """
    Validates and coerces raw extraction output into ReportRecords.

    Pure: no I/O, no logging; the result depends only on the input, the
    configuration and the reference day. A malformed entry never raises,
    it lands in ValidationOutcome.rejected with rule names and messages.
    """

    VALIDATOR_REGISTRY = {
        "required_field": RequiredFieldValidator,
        "report_date": ReportDateValidator,
        "department": DepartmentValidator,
        "verbatim_text": VerbatimTextValidator,
    }

    # (rule_name, record field, accepted entry keys, rule type)
    FIELD_RULES: list[tuple[str, str, tuple[str, ...], str]] = [
        ("employee_name_required", "employee_name", ("employeeName", "employee_name", "name"), "required_field"),
        ("report_date", "date", ("date", "reportDate", "report_date"), "report_date"),
        ("department", "department", ("department",), "department"),
        ("content_verbatim", "content", ("content", "contentSummary"), "verbatim_text"),
        ("next_steps_verbatim", "next_steps", ("nextSteps", "next_steps"), "verbatim_text"),
        ("blockers_verbatim", "blockers", ("blockers",), "verbatim_text"),
    ]

    def __init__(
        self,
        departments: list[str],
        default_department: str,
        keywords: list[str] | None = None,
        today: date | None = None,
    ):
        """
        Initialize the record validator.

        Args:
            departments: Department enumeration
            default_department: Fallback department for unknown classifications
            keywords: Keywords to flag
            today: Reference day for year-less dates (defaults to the current day)
        """
        self.departments = list(departments)
        self.default_department = default_department
        self.keywords = list(keywords or [])
        self.today = today
        self.validators: list[tuple[str, str, tuple[str, ...], BaseValidator]] = []
        self._build_validators()

    @classmethod
    def from_config(cls, config: DigestConfig, today: date | None = None) -> "RecordValidator":
        return cls(
            departments=config.departments,
            default_department=config.default_department,
            keywords=config.active_keywords,
            today=today,
        )

    def _build_validators(self) -> None:
        """Build validator instances for every field rule."""
        parameters_by_type: dict[str, dict[str, Any]] = {
            "report_date": {"today": self.today},
            "department": {"departments": self.departments, "default": self.default_department},
        }
        for rule_name, field_name, keys, rule_type in self.FIELD_RULES:
            validator_class = self.VALIDATOR_REGISTRY[rule_type]
            validator = validator_class(field_name, parameters_by_type.get(rule_type, {}))
            self.validators.append((rule_name, field_name, keys, validator))

    def validate(self, raw: list[Any]) -> ValidationOutcome:
        """
        Validate a batch of extractor entries.

        Args:
            raw: Extractor output; entries may have any shape

        Returns:
            ValidationOutcome with valid records, rejected entries and warnings
        """
        outcome = ValidationOutcome()
        for index, entry in enumerate(raw):
            record, rejection, warnings, coerced = self.validate_entry(index, entry)
            outcome.warnings.extend(warnings)
            if coerced:
                outcome.coerced_departments.append(index)
            if record is not None:
                outcome.valid.append(record)
            else:
                outcome.rejected.append(rejection)
        return outcome

    def validate_entry(
        self, index: int, entry: Any
    ) -> tuple[ReportRecord | None, RejectedEntry | None, list[str], bool]:
        """
        Validate one entry.

        Returns:
            (record, None, warnings, coerced) on success, (None, rejection, warnings, coerced)
            on failure; coerced tells whether the department fell back to the default
        """
        if not isinstance(entry, dict):
            rejection = RejectedEntry(
                index=index,
                raw_entry=entry,
                failed_rules=["entry_shape"],
                error_messages=[f"Entry must be an object, got {type(entry).__name__}"],
            )
            return None, rejection, [], False

        fields: dict[str, Any] = {}
        failed_rules: list[str] = []
        error_messages: list[str] = []
        warnings: list[str] = []
        coerced = False

        for rule_name, field_name, keys, validator in self.validators:
            value = _lookup(entry, keys)
            try:
                fields[field_name] = validator.validate(value, entry)
            except ValidationError as e:
                failed_rules.append(rule_name)
                error_messages.append(str(e))
                continue

            if validator.rule_type == "department" and fields[field_name] != _stripped(value):
                coerced = True
                warnings.append(
                    f"entry {index}: department {value!r} is not recognized, "
                    f"using {fields[field_name]!r}"
                )

        if failed_rules:
            rejection = RejectedEntry(
                index=index,
                raw_entry=entry,
                failed_rules=failed_rules,
                error_messages=error_messages,
            )
            return None, rejection, warnings, coerced

        fields["matched_keywords"] = match_keywords(
            self.keywords,
            [fields["content"], fields["next_steps"], fields["blockers"]],
        )
        return ReportRecord(**fields), None, warnings, coerced


def _lookup(entry: dict[str, Any], keys: tuple[str, ...]) -> Any:
    """Return the first non-null value among the accepted keys."""
    for key in keys:
        value = entry.get(key)
        if value is not None:
            return value
    return None


def _stripped(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value
