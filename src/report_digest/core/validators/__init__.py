"""
Report field validators and the record validator that combines them.
"""

from .base_validator import BaseValidator, ValidationError
from .date_validator import ReportDateValidator
from .department_validator import DepartmentValidator
from .record_validator import RecordValidator
from .required_field_validator import RequiredFieldValidator
from .verbatim_text_validator import VerbatimTextValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RequiredFieldValidator",
    "ReportDateValidator",
    "DepartmentValidator",
    "VerbatimTextValidator",
    "RecordValidator",
]
