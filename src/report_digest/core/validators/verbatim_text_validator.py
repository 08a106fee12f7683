"""
VerbatimTextValidator - passes free text through without any transformation.
"""

from typing import Any, Dict

from .base_validator import BaseValidator, ValidationError, is_encodable


class VerbatimTextValidator(BaseValidator):
    """
    Accepts a free-text block exactly as given.

    Report bodies are read by people as numbered lists, so line breaks,
    numbering and indentation are content. No trimming, joining or
    re-indentation happens here. A missing block becomes "".

    Fails if the value is present but not text.
    """

    def validate(self, value: Any, entry: Dict[str, Any]) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValidationError(
                rule_name="verbatim_text",
                field_name=self.field_name,
                message=f"Field must be text, got {type(value).__name__}"
            )
        if not is_encodable(value):
            raise ValidationError(
                rule_name="verbatim_text",
                field_name=self.field_name,
                message="Field contains characters that cannot be encoded as UTF-8"
            )
        return value

    @property
    def rule_type(self) -> str:
        return "verbatim_text"
