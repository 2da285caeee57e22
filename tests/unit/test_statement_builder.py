"""
Unit tests for the dynamic statement builder.

Includes property-based testing with hypothesis for placeholder/parameter agreement.
"""

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from logiload.core.errors import (
    ArgumentError,
    BuildError,
    SchemaError,
    TableNameRejected,
    ValidationRejection,
)
from logiload.core.models import MappingCatalog
from logiload.warehouse.statement_builder import DynamicStatementBuilder, quote_identifier

pytestmark = pytest.mark.unit


@pytest.fixture
def builder(order_catalog) -> DynamicStatementBuilder:
    return DynamicStatementBuilder(order_catalog)


class TestQuoteIdentifier:
    def test_plain(self):
        assert quote_identifier("orders") == '"orders"'

    def test_embedded_quote_and_percent(self):
        assert quote_identifier('we"ird%') == '"we""ird%%"'

    def test_dotted(self):
        assert quote_identifier("public.orders") == '"public"."orders"'


class TestBuildInsert:
    def test_columns_and_params_follow_definitions(self, builder, order):
        statement = builder.build_insert("order_table", order(1), row_index=0)

        assert statement.kind == "insert"
        assert statement.table == "orders"
        assert statement.sql.startswith('INSERT INTO "orders" ("order_no", "recipient_name", "recipient_addr"')
        assert statement.columns[0] == "order_no"
        assert statement.params["p0"] == "ORD-001"
        assert statement.placeholders == set(statement.params)
        assert statement.row_index == 0

    def test_values_never_appear_in_sql(self, builder, order):
        record = order(1, recipient_name="Robert'); DROP TABLE orders;--")

        statement = builder.build_insert("order_table", record)

        assert "DROP" not in statement.sql
        assert "Robert'); DROP TABLE orders;--" in statement.params.values()

    def test_missing_optional_column_is_omitted(self, builder, order):
        statement = builder.build_insert("order_table", order(1))

        assert "unit_price" not in statement.columns
        assert "order_date" not in statement.columns

    def test_missing_column_with_default_uses_default(self, builder, order):
        statement = builder.build_insert("order_table", order(1))

        index = statement.columns.index("status")
        assert statement.params[f"p{index}"] == "NEW"

    def test_auto_increment_column_never_written(self, builder, order):
        statement = builder.build_insert("order_table", order(1, id=99))

        assert "id" not in statement.columns
        assert 99 not in statement.params.values()

    def test_missing_required_column_rejects_record(self, builder, order):
        record = order(1)
        del record["address"]

        with pytest.raises(ValidationRejection) as exc_info:
            builder.build_insert("order_table", record, row_index=4)

        assert exc_info.value.row_index == 4
        assert "recipient_addr" in exc_info.value.reasons[0]

    def test_required_contact_columns_stay_optional(self, catalog_document, order):
        from logiload.core.catalog import load_catalog

        columns = catalog_document["mappings"]["order_table"]["columns"]
        columns["phone1"]["required"] = True
        columns["zip_code"]["required"] = True
        builder = DynamicStatementBuilder(load_catalog(catalog_document))
        record = order(1)
        del record["phone1"]
        del record["zip_code"]

        statement = builder.build_insert("order_table", record)

        assert "phone1" not in statement.columns
        assert "zip_code" not in statement.columns

    def test_unmapped_table_uses_sample_fields(self, builder):
        statement = builder.build_insert("invoices", {"invoice_no": "A-1", "amount": 10})

        assert statement.sql == 'INSERT INTO "invoices" ("invoice_no", "amount") VALUES (%(p0)s, %(p1)s)'
        assert statement.params == {"p0": "A-1", "p1": 10}

    def test_unmapped_table_without_fields(self):
        builder = DynamicStatementBuilder(MappingCatalog())

        with pytest.raises(SchemaError) as exc_info:
            builder.build_insert("invoices", {})

        assert exc_info.value.table == "invoices"

    def test_rejected_table_name_never_reaches_sql(self, builder, order):
        with pytest.raises(TableNameRejected):
            builder.build_insert("orders; DROP TABLE x", order(1))

    def test_unexpected_failure_is_wrapped(self, builder, order, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("resolver exploded")

        monkeypatch.setattr(builder.resolver, "resolve", explode)

        with pytest.raises(BuildError) as exc_info:
            builder.build_insert("order_table", order(1))

        assert exc_info.value.table == "order_table"
        assert isinstance(exc_info.value.cause, RuntimeError)

    @settings(max_examples=50, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(st.dictionaries(
        st.sampled_from([
            "order_number", "recipient_name", "address", "phone1", "zip_code",
            "product_name", "quantity", "unit_price", "order_date", "status", "extra",
        ]),
        st.one_of(st.none(), st.integers(min_value=1), st.text(min_size=1, max_size=10)),
    ).map(lambda d: {
        "order_number": "ORD-1", "recipient_name": "R", "address": "A", "quantity": 1, **d,
    }))
    def test_placeholders_match_params(self, order_catalog, record):
        builder = DynamicStatementBuilder(order_catalog)
        try:
            statement = builder.build_insert("order_table", record)
        except ValidationRejection:
            return

        assert statement.placeholders == set(statement.params)
        assert len(statement.columns) == len(statement.params)


class TestBuildUpdate:
    def test_primary_key_forms_where_clause(self, builder):
        statement = builder.build_update("order_table", {"order_number": "ORD-7", "quantity": 3})

        assert statement.sql == (
            'UPDATE "orders" SET "quantity" = %(p0)s WHERE "order_no" = %(k0)s'
        )
        assert statement.params == {"p0": 3, "k0": "ORD-7"}

    def test_caller_where_clause(self, builder):
        statement = builder.build_update(
            "order_table",
            {"quantity": 5},
            where='"order_no" = %(order_no)s',
            where_params={"order_no": "ORD-7"},
        )

        assert statement.sql.endswith('WHERE "order_no" = %(order_no)s')
        assert statement.placeholders == set(statement.params)

    def test_no_key_and_no_where_is_ambiguous(self):
        builder = DynamicStatementBuilder(MappingCatalog())

        with pytest.raises(ArgumentError, match="Ambiguous"):
            builder.build_update("invoices", {"invoice_no": "A-1", "amount": 3})

    def test_missing_key_value(self, builder):
        with pytest.raises(ArgumentError, match="no value"):
            builder.build_update("order_table", {"quantity": 3})

    def test_where_placeholders_must_match_params(self, builder):
        with pytest.raises(ArgumentError, match="do not match"):
            builder.build_update(
                "order_table",
                {"quantity": 5},
                where='"order_no" = %(order_no)s',
                where_params={"other": "x"},
            )

    def test_positional_placeholders_refused(self, builder):
        with pytest.raises(ArgumentError, match="named"):
            builder.build_update("order_table", {"quantity": 5}, where='"order_no" = %s')

    def test_where_with_statement_separator_refused(self, builder):
        with pytest.raises(ArgumentError, match="forbidden"):
            builder.build_update(
                "order_table", {"quantity": 5}, where="1 = 1; DELETE FROM orders"
            )

    def test_where_param_colliding_with_generated_name(self, builder):
        with pytest.raises(ArgumentError, match="collides"):
            builder.build_update(
                "order_table",
                {"quantity": 5},
                where='"order_no" = %(p0)s',
                where_params={"p0": "ORD-7"},
            )


class TestBuildDelete:
    def test_primary_key_delete(self, builder):
        statement = builder.build_delete("order_table", {"order_number": "ORD-7"})

        assert statement.sql == 'DELETE FROM "orders" WHERE "order_no" = %(k0)s'
        assert statement.params == {"k0": "ORD-7"}

    def test_where_delete_needs_no_record(self, builder):
        statement = builder.build_delete(
            "order_table", where='"quantity" > %(limit_qty)s', where_params={"limit_qty": 10}
        )

        assert statement.params == {"limit_qty": 10}

    def test_no_key_and_no_where_is_ambiguous(self):
        builder = DynamicStatementBuilder(MappingCatalog())

        with pytest.raises(ArgumentError):
            builder.build_delete("invoices", {"invoice_no": "A-1"})


class TestTruncateAndReads:
    def test_truncate_has_no_params(self, builder):
        statement = builder.build_truncate("order_table")

        assert statement.sql == 'TRUNCATE TABLE "orders"'
        assert statement.params == {}

    def test_truncate_goes_through_gate(self, builder):
        with pytest.raises(TableNameRejected):
            builder.build_truncate("ORDERS_DROP_ARCHIVE")

    def test_mapped_table_name_is_gated_too(self, catalog_document):
        from logiload.core.catalog import load_catalog

        catalog_document["mappings"]["order_table"]["table_name"] = "orders archive"
        builder = DynamicStatementBuilder(load_catalog(catalog_document))

        with pytest.raises(TableNameRejected):
            builder.build_truncate("order_table")

    def test_select_with_limit_and_offset(self, builder):
        statement = builder.build_select("order_table", limit=10, offset=20)

        assert statement.sql.startswith('SELECT "order_no", ')
        assert statement.sql.endswith("LIMIT %(limit)s OFFSET %(offset)s")
        assert statement.params == {"limit": 10, "offset": 20}

    def test_select_unmapped_table_uses_star(self, builder):
        statement = builder.build_select("invoices")

        assert statement.sql == 'SELECT * FROM "invoices"'

    def test_count_with_where(self, builder):
        statement = builder.build_count(
            "order_table", where='"status" = %(status)s', where_params={"status": "NEW"}
        )

        assert statement.sql == 'SELECT COUNT(*) AS count FROM "orders" WHERE "status" = %(status)s'
        assert statement.params == {"status": "NEW"}
