"""
Tabular <-> record adaptation and value transformations.
"""

from .adapter import TabularAdapter, from_row, from_store_row, payload_of, row_as_mapping, to_row
from .transformations import SPECIAL_HANDLERS, ValueTransformer, compile_transformations

__all__ = [
    "SPECIAL_HANDLERS",
    "TabularAdapter",
    "ValueTransformer",
    "compile_transformations",
    "from_row",
    "from_store_row",
    "payload_of",
    "row_as_mapping",
    "to_row",
]
