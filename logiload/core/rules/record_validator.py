"""
Record validator for order imports.

Combines a small set of universal order rules with the declarative
ValidationRules of a table mapping and decides whether a record may be
written.
"""

from typing import Any

from logiload.core.models import (
    RecordFieldRoles,
    RecordValidationResult,
    TableMapping,
    ValidationRules,
)
from logiload.core.models.mapping_catalog import LENIENT_ROLES
from logiload.core.validators import (
    BaseValidator,
    RangeValidator,
    RequiredFieldValidator,
    TypeValidator,
    ValidationError,
    is_blank,
)
from logiload.observability.logger import get_logger

logger = get_logger(__name__)


class RecordValidator:
    """
    Policy-driven record check.

    Universal rules (always applied):
    - order number, recipient name and address must be non-empty
    - quantity must be a number greater than zero

    Catalog rules (ValidationRules):
    - required_fields must be non-empty
    - numeric_fields / decimal_fields / date_fields must convert when present

    The phone and zip-code roles are lenient: they are never required, even
    when listed in required_fields, so noisy bulk imports keep rows that
    only lack contact detail.
    """

    def __init__(
        self,
        rules: ValidationRules | None = None,
        roles: RecordFieldRoles | None = None,
        lenient_roles: tuple[str, ...] = LENIENT_ROLES,
        universal_rules: bool = True,
    ):
        """
        Initialize the record validator.

        Args:
            rules: Declarative rules of the target table
            roles: Which record fields play order_number/recipient_name/... roles
            lenient_roles: Roles exempt from required-field checks
            universal_rules: Whether to apply the universal order rules
        """
        self.rules = rules or ValidationRules()
        self.roles = roles or RecordFieldRoles()
        self.lenient_fields = self.roles.lenient_fields(lenient_roles)
        self.universal_rules = universal_rules
        self.validators: list[BaseValidator] = []
        self._build_validators()

    @classmethod
    def for_table(
        cls,
        mapping: TableMapping | None,
        roles: RecordFieldRoles | None = None,
        universal_rules: bool = True,
    ) -> "RecordValidator":
        rules = mapping.validation_rules if mapping is not None else None
        return cls(rules=rules, roles=roles, universal_rules=universal_rules)

    def _build_validators(self) -> None:
        seen: set[str] = set()

        def add(validator: BaseValidator) -> None:
            if validator.rule_name not in seen:
                seen.add(validator.rule_name)
                self.validators.append(validator)

        if self.universal_rules:
            for role in ("order_number", "recipient_name", "address"):
                add(RequiredFieldValidator(getattr(self.roles, role)))
            add(RangeValidator(
                self.roles.quantity,
                {"min_exclusive": 0, "allow_missing": False},
            ))

        for field_name in self.rules.required_fields:
            if field_name in self.lenient_fields:
                continue
            add(RequiredFieldValidator(field_name))

        for field_name in self.rules.numeric_fields:
            add(TypeValidator(field_name, {"expected_type": "numeric"}))
        for field_name in self.rules.decimal_fields:
            add(TypeValidator(field_name, {"expected_type": "decimal"}))
        for field_name in self.rules.date_fields:
            add(TypeValidator(field_name, {"expected_type": "date"}))

    def validate(self, record: dict[str, Any], row_index: int | None = None) -> RecordValidationResult:
        """
        Validate a record against all rules.

        Args:
            record: Field name -> value
            row_index: Position of the record in the input

        Returns:
            RecordValidationResult with passed and failed rule names
        """
        passed_rules: list[str] = []
        failed_rules: list[str] = []
        messages: list[str] = []

        for validator in self.validators:
            try:
                validator.validate(record.get(validator.field_name), record)
                passed_rules.append(validator.rule_name)
            except ValidationError as e:
                failed_rules.append(validator.rule_name)
                messages.append(str(e))

        lenient_skips = [
            f for f in self.rules.required_fields
            if f in self.lenient_fields and is_blank(record.get(f))
        ]

        return RecordValidationResult(
            row_index=row_index,
            passed=not failed_rules,
            passed_rules=passed_rules,
            failed_rules=failed_rules,
            error_messages=messages,
            lenient_skips=lenient_skips,
        )

    def is_valid(self, record: dict[str, Any]) -> bool:
        """Non-throwing eligibility check."""
        try:
            return self.validate(record).passed
        except Exception as e:
            # Unexpected failures (odd value types) make the record ineligible.
            logger.warning(f"Validator error treated as rejection: {e}")
            return False

    def get_rule_summary(self) -> dict[str, Any]:
        counts: dict[str, int] = {}
        for validator in self.validators:
            counts[validator.rule_type] = counts.get(validator.rule_type, 0) + 1
        return {
            "total_rules": len(self.validators),
            "rules_by_type": counts,
            "lenient_fields": sorted(self.lenient_fields),
        }
