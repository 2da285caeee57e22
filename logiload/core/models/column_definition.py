"""
Resolved column definitions.

A ColumnDefinition is what the statement builder works from. Its `source`
records where it came from: a catalog column or a field seen on a sample
record when the table has no catalog entry.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .mapping_catalog import AdditionalColumn, ColumnMapping


class FromCatalog(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["catalog"] = "catalog"
    column: ColumnMapping | AdditionalColumn
    additional: bool = False


class FromSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["sample"] = "sample"
    field_name: str


ColumnSource = Union[FromCatalog, FromSample]


class ColumnDefinition(BaseModel):
    """
    Column resolved for one table.

    Attributes:
        field_name: Key of the value in a Record
        column_name: Persisted column name
        data_type: Declared type tag
        required: Whether inserts must carry a value
        default: Value used when the record has none
        primary_key: Update/delete target column
        auto_increment: Store-generated, never written
        source: FromCatalog or FromSample
    """

    model_config = ConfigDict(frozen=True)

    field_name: str = Field(..., min_length=1)
    column_name: str = Field(..., min_length=1)
    data_type: str = "text"
    required: bool = False
    default: Any = None
    primary_key: bool = False
    auto_increment: bool = False
    source: ColumnSource = Field(..., discriminator="kind")

    @classmethod
    def from_catalog(
        cls,
        field_name: str,
        column: ColumnMapping | AdditionalColumn,
        additional: bool = False,
    ) -> "ColumnDefinition":
        return cls(
            field_name=field_name,
            column_name=column.db_column,
            data_type=column.data_type,
            required=column.required,
            default=column.default_value,
            primary_key=column.primary_key,
            auto_increment=column.auto_increment,
            source=FromCatalog(column=column, additional=additional),
        )

    @classmethod
    def from_sample(cls, field_name: str) -> "ColumnDefinition":
        return cls(
            field_name=field_name,
            column_name=field_name,
            data_type="text",
            required=False,
            source=FromSample(field_name=field_name),
        )

    @property
    def is_fallback(self) -> bool:
        return isinstance(self.source, FromSample)
