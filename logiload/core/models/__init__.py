"""
Core data models for the mapping-driven order loader.

All models use Pydantic for runtime validation and type safety.
"""

from typing import Any

from .column_definition import ColumnDefinition, ColumnSource, FromCatalog, FromSample
from .generated_statement import GeneratedStatement
from .mapping_catalog import (
    AdditionalColumn,
    ColumnMapping,
    DataTransformation,
    ErrorHandling,
    GlobalSettings,
    MappingCatalog,
    RecordFieldRoles,
    TableMapping,
    ValidationRules,
)
from .rejected_record import RejectedRecord
from .validation_result import RecordValidationResult
from .write_progress import WriteProgress, WriterState, WriterStatus, WriteSummary

Record = dict[str, Any]

__all__ = [
    "AdditionalColumn",
    "ColumnDefinition",
    "ColumnMapping",
    "ColumnSource",
    "DataTransformation",
    "ErrorHandling",
    "FromCatalog",
    "FromSample",
    "GeneratedStatement",
    "GlobalSettings",
    "MappingCatalog",
    "Record",
    "RecordFieldRoles",
    "RecordValidationResult",
    "RejectedRecord",
    "TableMapping",
    "ValidationRules",
    "WriteProgress",
    "WriteSummary",
    "WriterState",
    "WriterStatus",
]
