"""
Field-level validators used by the record validator.
"""

from .base_validator import BaseValidator, ValidationError, is_blank
from .range_validator import RangeValidator
from .required_field_validator import RequiredFieldValidator
from .type_validator import TypeValidator, parse_date, parse_decimal, parse_number

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RequiredFieldValidator",
    "TypeValidator",
    "RangeValidator",
    "is_blank",
    "parse_date",
    "parse_decimal",
    "parse_number",
]
