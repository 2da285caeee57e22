"""
Unit tests for the Spark file readers.
"""

import pytest

from logiload.batch.readers import FileReader
from logiload.core.errors import ConfigError

pytestmark = pytest.mark.unit


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        FileReader(None).read("/nonexistent/orders.csv")


def test_format_disabled_by_catalog(tmp_path):
    path = tmp_path / "orders.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(ConfigError, match="json"):
        FileReader(None, supported_formats=["csv"]).read(path, file_format="json")


def test_unknown_format(tmp_path):
    path = tmp_path / "orders.xlsx"
    path.write_bytes(b"")

    with pytest.raises(ConfigError):
        FileReader(None, supported_formats=["csv", "xlsx"]).read(path, file_format="xlsx")


@pytest.mark.slow
def test_csv_keeps_leading_zeros(spark_session, tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text(
        "order_no,zip_code,phone1\n"
        "ORD-001, 04524 ,01012345678\n",
        encoding="utf-8",
    )

    rows = FileReader(spark_session).read(path).collect()

    assert rows[0].asDict() == {"order_no": "ORD-001", "zip_code": "04524", "phone1": "01012345678"}


@pytest.mark.slow
def test_dataframe_to_records(spark_session, tmp_path, order_catalog):
    from logiload.core.transform import TabularAdapter

    path = tmp_path / "orders.csv"
    path.write_text("order_no,recipient_addr,quantity\nord 7,7 Pier Street,3\n", encoding="utf-8")
    df = FileReader(spark_session).read(path)

    records = TabularAdapter(order_catalog.resolve_table("order_table")).records_from_dataframe(df)

    assert records == [{"order_number": "ORD7", "address": "7 Pier Street", "quantity": 3}]
