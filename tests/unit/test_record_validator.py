"""
Unit tests for the policy-driven record validator.
"""

import pytest

from logiload.core.models import RecordFieldRoles, ValidationRules
from logiload.core.rules import RecordValidator

pytestmark = pytest.mark.unit


@pytest.fixture
def validator(order_catalog) -> RecordValidator:
    return RecordValidator.for_table(
        order_catalog.resolve_table("order_table"),
        roles=order_catalog.global_settings.record_fields,
    )


class TestUniversalRules:
    def test_valid_order_passes(self, validator, order):
        result = validator.validate(order(1), row_index=0)

        assert result.passed
        assert result.failed_rules == []
        assert "quantity_range" in result.passed_rules

    def test_missing_recipient_name_is_rejected(self, validator, order):
        record = order(1)
        del record["recipient_name"]

        result = validator.validate(record)

        assert not result.passed
        assert "recipient_name_required_field" in result.failed_rules
        assert validator.is_valid(record) is False

    @pytest.mark.parametrize("field", ["order_number", "address"])
    def test_blank_identity_fields_are_rejected(self, validator, order, field):
        assert not validator.is_valid(order(1, **{field: "  "}))

    @pytest.mark.parametrize("quantity", [0, -1, "0", None, "lots"])
    def test_quantity_must_be_positive_number(self, validator, order, quantity):
        assert not validator.is_valid(order(1, quantity=quantity))

    def test_universal_rules_can_be_switched_off(self, order):
        validator = RecordValidator(universal_rules=False)

        assert validator.is_valid({"anything": 1})


class TestLenientContactFields:
    def test_missing_phone_alone_is_accepted(self, validator, order):
        record = order(1)
        del record["phone1"]

        result = validator.validate(record)

        assert result.passed
        assert result.lenient_skips == ["phone1"]

    def test_missing_zip_code_is_accepted(self, validator, order):
        assert validator.is_valid(order(1, zip_code=""))

    def test_lenient_roles_follow_record_field_roles(self):
        roles = RecordFieldRoles(phone="mobile", zip_code="postcode")
        validator = RecordValidator(
            rules=ValidationRules(required_fields=["mobile", "postcode", "memo"]),
            roles=roles,
            universal_rules=False,
        )

        result = validator.validate({"memo": "x"})

        assert result.passed
        assert sorted(result.lenient_skips) == ["mobile", "postcode"]

    def test_other_required_fields_stay_strict(self):
        validator = RecordValidator(
            rules=ValidationRules(required_fields=["memo"]),
            universal_rules=False,
        )

        assert not validator.is_valid({})


class TestCatalogTypeRules:
    def test_bad_date_is_rejected(self, validator, order):
        result = validator.validate(order(1, order_date="next tuesday"))

        assert not result.passed
        assert result.failed_rules == ["order_date_type_check"]

    def test_bad_decimal_is_rejected(self, validator, order):
        assert not validator.is_valid(order(1, unit_price="12.5.1"))

    def test_absent_typed_fields_pass(self, validator, order):
        assert validator.is_valid(order(1))

    def test_rule_summary(self, validator):
        summary = validator.get_rule_summary()

        assert summary["rules_by_type"]["required_field"] >= 3
        assert summary["lenient_fields"] == ["phone1", "zip_code"]
