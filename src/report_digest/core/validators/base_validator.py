"""
Base validator interface for all report field rules.

All validators inherit from BaseValidator and implement validate(), which
returns the normalized field value or raises ValidationError.
"""

from abc import ABC, abstractmethod
from typing import Any


class ValidationError(Exception):
    """Raised when a validation rule fails."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message
        super().__init__(f"[{rule_name}] {field_name}: {message}")


class BaseValidator(ABC):
    """
    Abstract base class for all validators.

    Each validator implements one rule type for one report field
    (required_field, report_date, department, verbatim_text).
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        """
        Initialize validator.

        Args:
            field_name: Name of the field to validate
            parameters: Rule-specific parameters (e.g. departments for department)
        """
        self.field_name = field_name
        self.parameters = parameters or {}

    @abstractmethod
    def validate(self, value: Any, entry: dict[str, Any]) -> Any:
        """
        Validate a value against this rule.

        Args:
            value: The field value to validate (None when absent)
            entry: The entire raw entry (for context-dependent validation)

        Returns:
            The normalized value to store on the record

        Raises:
            ValidationError: If validation fails
        """
        pass

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name}, params={self.parameters})"


def is_encodable(text: str) -> bool:
    """False for strings holding lone surrogates (valid JSON escapes, invalid UTF-8)."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True
