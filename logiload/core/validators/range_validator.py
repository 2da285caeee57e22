"""
Numeric bounds, used for the quantity > 0 rule.
"""

import operator
from decimal import Decimal
from typing import Any

from .base_validator import BaseValidator, is_blank
from .type_validator import parse_decimal

# parameter -> (comparison that must hold, message when it does not)
BOUNDS = {
    "min": (operator.ge, "is less than minimum"),
    "min_exclusive": (operator.gt, "must be greater than"),
    "max": (operator.le, "exceeds maximum"),
    "max_exclusive": (operator.lt, "must be less than"),
}


class RangeValidator(BaseValidator):
    """
    The value, read as a number, must lie within the configured bounds.

    Parameters are any of `min`, `max` (inclusive) and `min_exclusive`,
    `max_exclusive`, plus `allow_missing` (default True). Numeric strings
    such as "3" or "1,200" are accepted.
    """

    rule_type = "range"

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.bounds: list[tuple[str, Decimal]] = [
            (name, parse_decimal(self.parameters[name]))
            for name in BOUNDS
            if self.parameters.get(name) is not None
        ]
        if not self.bounds:
            raise ValueError(f"RangeValidator for '{field_name}' needs one of: {', '.join(BOUNDS)}")
        self.allow_missing = self.parameters.get("allow_missing", True)

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if is_blank(value):
            if self.allow_missing:
                return
            raise self.fail("Value is missing")

        try:
            number = parse_decimal(value)
        except ValueError:
            raise self.fail(f"Value must be numeric, got {value!r}") from None

        for name, limit in self.bounds:
            holds, message = BOUNDS[name]
            if not holds(number, limit):
                raise self.fail(f"Value {value} {message} {self.parameters[name]}")
