"""
Unit tests for schema resolution with sample-record fallback.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from logiload.core.errors import SchemaError
from logiload.core.models import FromCatalog, FromSample, MappingCatalog
from logiload.core.schema import SchemaResolver

pytestmark = pytest.mark.unit


class TestCatalogResolution:
    def test_primary_columns_then_additional(self, order_catalog):
        definitions = SchemaResolver(order_catalog).resolve("order_table")

        assert [d.field_name for d in definitions] == [
            "order_number", "recipient_name", "address", "phone1", "zip_code",
            "product_name", "quantity", "unit_price", "order_date",
            "id", "status",
        ]
        assert definitions[0].column_name == "order_no"
        assert isinstance(definitions[0].source, FromCatalog)
        assert definitions[-1].source.additional is True
        assert definitions[-1].default == "NEW"

    def test_order_is_stable_across_resolvers(self, order_catalog):
        first = SchemaResolver(order_catalog).resolve("orders")
        second = SchemaResolver(order_catalog).resolve("orders")

        assert first == second

    def test_results_are_cached_per_identifier(self, order_catalog):
        resolver = SchemaResolver(order_catalog)
        resolver.resolve("order_table")
        resolver.catalog = MappingCatalog()

        # Still served from the cache
        assert resolver.resolve("order_table")[0].column_name == "order_no"

        resolver.clear_cache()
        with pytest.raises(SchemaError):
            resolver.resolve("order_table")

    def test_sample_record_ignored_for_mapped_table(self, order_catalog):
        definitions = SchemaResolver(order_catalog).resolve("order_table", {"unexpected": 1})

        assert all(not d.is_fallback for d in definitions)


class TestFallbackResolution:
    def test_one_text_column_per_sample_field(self, order_catalog):
        sample = {"invoice_no": "A-1", "amount": 12, "memo": None}

        definitions = SchemaResolver(order_catalog).resolve("invoices", sample)

        assert [d.column_name for d in definitions] == ["invoice_no", "amount", "memo"]
        assert all(d.data_type == "text" and not d.required for d in definitions)
        assert all(isinstance(d.source, FromSample) for d in definitions)

    def test_no_sample_record_raises_schema_error(self, order_catalog):
        with pytest.raises(SchemaError) as exc_info:
            SchemaResolver(order_catalog).resolve("invoices")

        assert exc_info.value.table == "invoices"

    def test_empty_sample_record_raises_schema_error(self, order_catalog):
        with pytest.raises(SchemaError):
            SchemaResolver(order_catalog).resolve("invoices", {})

    def test_fallback_can_be_disabled(self, order_catalog):
        resolver = SchemaResolver(order_catalog, allow_fallback=False)

        with pytest.raises(SchemaError, match="disabled"):
            resolver.resolve("invoices", {"invoice_no": "A-1"})

    @given(st.dictionaries(
        st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=12),
        st.one_of(st.none(), st.integers(), st.text(max_size=5)),
        min_size=1,
        max_size=15,
    ))
    def test_fallback_never_throws_for_non_empty_samples(self, sample):
        definitions = SchemaResolver(MappingCatalog()).resolve("anything", sample)

        assert [d.field_name for d in definitions] == list(sample)
