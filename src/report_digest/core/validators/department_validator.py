"""
DepartmentValidator - coerces a classification into the department enumeration.
"""

from typing import Any, Dict

from .base_validator import BaseValidator


class DepartmentValidator(BaseValidator):
    """
    Maps the extracted department onto the configured enumeration.

    Classification failure is not fatal: a missing, non-text or unknown
    department becomes the default department. This validator never raises.

    Parameters:
        departments: The fixed department enumeration
        default: The fallback department (member of departments)
    """

    def __init__(self, field_name: str, parameters: Dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.departments = list(self.parameters["departments"])
        self.default = self.parameters["default"]
        if self.default not in self.departments:
            raise ValueError(f"Default department '{self.default}' is not in {self.departments}")

    def validate(self, value: Any, entry: Dict[str, Any]) -> str:
        if isinstance(value, str):
            if value in self.departments:
                return value
            stripped = value.strip()
            if stripped in self.departments:
                return stripped
        return self.default

    @property
    def rule_type(self) -> str:
        return "department"
