"""
RequiredFieldValidator - ensures a text field is present and not null/empty.
"""

from typing import Any, Dict
from .base_validator import BaseValidator, ValidationError, is_encodable


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a required text field is present and not null/empty.

    Fails if:
    - Field value is None (missing from the entry or null)
    - Field value is not a string
    - Field value is empty or whitespace only (configurable)

    The value is returned untouched: names keep their original spacing.
    """

    def __init__(self, field_name: str, parameters: Dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.allow_empty_string = self.parameters.get("allow_empty_string", False)

    def validate(self, value: Any, entry: Dict[str, Any]) -> str:
        if value is None:
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message="Field is missing or null"
            )

        if not isinstance(value, str):
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message=f"Field must be text, got {type(value).__name__}"
            )

        # Check if value is empty string (unless explicitly allowed)
        if not self.allow_empty_string and value.strip() == "":
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message="Field value is empty string"
            )

        if not is_encodable(value):
            raise ValidationError(
                rule_name="required_field",
                field_name=self.field_name,
                message="Field contains characters that cannot be encoded as UTF-8"
            )

        return value

    @property
    def rule_type(self) -> str:
        return "required_field"
