"""
Field checks shared by the record validator.

A check looks at one field of a record and raises ValidationError when the
value is not acceptable. Checks never modify the record.
"""

from abc import ABC, abstractmethod
from typing import Any


class ValidationError(Exception):
    """One field failed one check."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message
        super().__init__(f"[{rule_name}] {field_name}: {message}")


def is_blank(value: Any) -> bool:
    """True for None and whitespace-only strings (empty spreadsheet cells)."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


class BaseValidator(ABC):
    """
    A single check bound to one field.

    Subclasses set `rule_type` and implement validate(). The reported rule
    name is "<field>_<rule_type>", so the same check on two fields gives two
    distinct rule names in a validation result.
    """

    rule_type: str = ""

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        self.field_name = field_name
        self.parameters = dict(parameters or {})

    @property
    def rule_name(self) -> str:
        return f"{self.field_name}_{self.rule_type}"

    def fail(self, message: str) -> ValidationError:
        return ValidationError(rule_name=self.rule_type, field_name=self.field_name, message=message)

    @abstractmethod
    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Check one value.

        Args:
            value: The field's value (None when absent)
            record: The whole record, for checks that need the field's presence

        Raises:
            ValidationError: If the value fails the check
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.field_name!r}, {self.parameters})"
