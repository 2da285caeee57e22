"""
Unit tests for the tabular adapter and value transformations.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from logiload.core.errors import ConfigError
from logiload.core.models import DataTransformation
from logiload.core.rules import CollectingRejectionSink
from logiload.core.schema import SchemaResolver
from logiload.core.transform import (
    TabularAdapter,
    ValueTransformer,
    from_row,
    from_store_row,
    row_as_mapping,
    to_row,
)

pytestmark = pytest.mark.unit


def transformer(**kwargs) -> ValueTransformer:
    return ValueTransformer("field", DataTransformation(**kwargs))


class TestValueTransformer:
    @pytest.mark.parametrize("tag, value, expected", [
        ("trim", "  Kim  ", "Kim"),
        ("uppercase", "ord-1", "ORD-1"),
        ("lowercase", "ABC", "abc"),
        ("uppercase-code", " ab 12 c ", "AB12C"),
        ("digits-only", "010-1234-5678", "01012345678"),
        ("star-prefix", "fragile", "*fragile"),
        ("star-prefix", "*fragile", "*fragile"),
        ("star_processing", "fragile", "*fragile"),
        ("DIGITS_ONLY", "(02) 555", "02555"),
    ])
    def test_special_handling(self, tag, value, expected):
        assert transformer(special_handling=tag).apply(value) == expected

    @pytest.mark.parametrize("tag, value, expected", [
        ("integer", "1,000", 1000),
        ("int", 3.0, 3),
        ("decimal", "19.90", Decimal("19.90")),
        ("float", "2.5", 2.5),
        ("date", "2025/03/01", datetime(2025, 3, 1)),
        ("bool", "yes", True),
        ("varchar", 12, "12"),
    ])
    def test_type_conversion(self, tag, value, expected):
        assert transformer(data_type_conversion=tag).apply(value) == expected

    def test_blank_value_takes_default(self):
        assert transformer(special_handling="trim", default_value="NEW").apply("   ") == "NEW"

    def test_failed_conversion_takes_default(self):
        assert transformer(data_type_conversion="integer", default_value=0).apply("n/a") == 0

    def test_handling_then_conversion(self):
        t = transformer(special_handling="digits-only", data_type_conversion="integer")
        assert t.apply("qty: 12") == 12

    def test_unknown_special_handling(self):
        with pytest.raises(ConfigError, match="special_handling"):
            transformer(special_handling="reverse")

    def test_unknown_conversion(self):
        with pytest.raises(ConfigError, match="data_type_conversion"):
            transformer(data_type_conversion="money")


class TestTabularAdapter:
    def test_looks_up_by_persisted_column_name(self, order_catalog):
        mapping = order_catalog.resolve_table("order_table")
        row = {
            "order_no": " ord 001 ",
            "recipient_name": "Kim",
            "recipient_addr": "1 Harbor Road",
            "phone1": "010-1234-5678",
            "quantity": "2",
            "unit_price": "1,500.00",
            "status": "new",
        }

        record = from_row(row, mapping)

        assert record == {
            "order_number": "ORD001",
            "recipient_name": "Kim",
            "address": "1 Harbor Road",
            "phone1": "01012345678",
            "quantity": 2,
            "unit_price": Decimal("1500.00"),
            "status": "new",
        }

    def test_absent_columns_leave_field_unset(self, order_catalog):
        record = from_row({"order_no": "A1"}, order_catalog.resolve_table("order_table"))

        assert record == {"order_number": "A1"}
        assert "zip_code" not in record

    def test_unknown_columns_are_ignored(self, order_catalog):
        record = from_row({"order_no": "A1", "Memo": "x"}, order_catalog.resolve_table("order_table"))

        assert "Memo" not in record

    def test_accepts_objects_with_as_dict(self, order_catalog):
        class SparkLikeRow:
            def asDict(self):
                return {"order_no": "A1"}

        adapter = TabularAdapter(order_catalog.resolve_table("order_table"))

        assert adapter.from_row(SparkLikeRow()) == {"order_number": "A1"}

    def test_unsupported_rows_are_rejected_not_fatal(self, order_catalog):
        sink = CollectingRejectionSink()
        adapter = TabularAdapter(order_catalog.resolve_table("order_table"), "order_table")

        records = adapter.adapt_rows([{"order_no": "A1"}, 42, {"order_no": "A2"}], sink)

        assert [r["order_number"] for r in records] == ["A1", "A2"]
        assert len(sink) == 1
        assert sink.rejections[0].stage == "adapter"
        assert sink.rejections[0].row_index == 1

    def test_indexed_rows_keep_source_positions(self, order_catalog):
        adapter = TabularAdapter(order_catalog.resolve_table("order_table"), "order_table")

        adapted = adapter.adapt_indexed([{"order_no": "A1"}, None, {"order_no": "A3"}])

        assert [(index, record["order_number"]) for index, record in adapted] == [(0, "A1"), (2, "A3")]

    def test_unknown_transformation_tag_fails_construction(self, catalog_document):
        from logiload.core.catalog import load_catalog

        catalog_document["mappings"]["order_table"]["data_transformations"]["zip_code"] = {
            "special_handling": "rot13",
        }
        mapping = load_catalog(catalog_document).resolve_table("order_table")

        with pytest.raises(ConfigError) as exc_info:
            TabularAdapter(mapping)

        assert exc_info.value.table == "order_table"


class TestToRow:
    def test_round_trip_through_definitions(self, order_catalog, order):
        mapping = order_catalog.resolve_table("order_table")
        definitions = SchemaResolver.from_mapping(mapping)

        row = to_row(order(1), definitions)

        assert row["order_no"] == "ORD-001"
        assert row["recipient_addr"] == "1 Harbor Road"
        assert row["unit_price"] is None
        assert from_store_row(row, definitions)["address"] == "1 Harbor Road"

    def test_plain_column_names(self):
        assert to_row({"a": 1}, ["a", "b"]) == {"a": 1, "b": None}

    def test_adapter_to_row_defaults_to_mapping_shape(self, order_catalog, order):
        adapter = TabularAdapter(order_catalog.resolve_table("order_table"))

        row = adapter.to_row(order(1))

        assert list(row)[:3] == ["order_no", "recipient_name", "recipient_addr"]

    def test_row_as_mapping_rejects_scalars(self):
        with pytest.raises(TypeError):
            row_as_mapping(3)
