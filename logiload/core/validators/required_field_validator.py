"""
Presence check for identity and address fields.
"""

from typing import Any

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    The field must exist in the record and carry a non-blank value.

    A spreadsheet cell holding only spaces counts as empty unless the
    `allow_empty_string` parameter is set.
    """

    rule_type = "required_field"

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if self.field_name not in record:
            raise self.fail(f"Required field '{self.field_name}' is missing")
        if value is None:
            raise self.fail(f"Required field '{self.field_name}' is null")
        if isinstance(value, str) and not value.strip() and not self.parameters.get("allow_empty_string"):
            raise self.fail(f"Required field '{self.field_name}' is an empty string")
