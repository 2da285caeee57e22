"""
TypeValidator - checks that a field value is of, or converts to, an expected type.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from .base_validator import BaseValidator, is_blank

TRUE_WORDS = frozenset({"true", "1", "yes", "y"})
FALSE_WORDS = frozenset({"false", "0", "no", "n"})

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y.%m.%d",
    "%Y%m%d",
)


def parse_date(value: Any) -> datetime:
    """
    Parse a date or datetime from the forms spreadsheets commonly produce.

    Raises:
        ValueError: If the value is not a recognizable date
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"'{text}' is not a recognized date")


def parse_decimal(value: Any) -> Decimal:
    """
    Parse a Decimal, tolerating thousands separators.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a decimal")
    if isinstance(value, Decimal):
        result = value
    else:
        text = str(value).strip().replace(",", "")
        try:
            result = Decimal(text)
        except InvalidOperation as e:
            raise ValueError(f"'{value}' is not a number") from e
    if not result.is_finite():
        raise ValueError(f"'{value}' is not a finite number")
    return result


def parse_number(value: Any) -> int | float:
    """Parse an int when integral, otherwise a float."""
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, int | float):
        return value
    number = parse_decimal(value)
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def parse_integer(value: Any) -> int:
    """Parse an integral number; "1,000" and 3.0 are accepted, 3.5 is not."""
    number = parse_decimal(value)
    if number != number.to_integral_value():
        raise ValueError(f"'{value}' is not an integer")
    return int(number)


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_WORDS:
        return True
    if text in FALSE_WORDS:
        return False
    raise ValueError(f"Cannot parse '{value}' as boolean")


class TypeValidator(BaseValidator):
    """
    Validates that a field is of, or can be converted to, the expected type.

    Blank values pass; presence is the required-field check's job.

    Supported types:
    - numeric (int or float), integer, decimal, date, boolean
    """

    rule_type = "type_check"

    PARSERS = {
        "numeric": parse_number,
        "number": parse_number,
        "integer": parse_integer,
        "int": parse_integer,
        "decimal": parse_decimal,
        "float": float,
        "date": parse_date,
        "datetime": parse_date,
        "boolean": parse_bool,
        "bool": parse_bool,
    }

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        expected_type = self.parameters.get("expected_type")
        if not expected_type:
            raise ValueError("TypeValidator requires 'expected_type' parameter")

        self.expected_type = str(expected_type).lower()
        if self.expected_type not in self.PARSERS:
            raise ValueError(f"Unsupported type: {expected_type}")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if is_blank(value):
            return

        try:
            self.convert(value)
        except (ValueError, TypeError, ArithmeticError) as e:
            raise self.fail(f"Cannot convert {type(value).__name__} to {self.expected_type}: {e}") from e

    def convert(self, value: Any) -> Any:
        """
        Convert value to the expected type.

        Raises:
            ValueError: If conversion fails
        """
        return self.PARSERS[self.expected_type](value)
