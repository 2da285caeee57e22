"""
Mapping catalog loading and reloading.
"""

from .loader import (
    CatalogLoader,
    load_catalog,
    load_catalog_or_default,
    parse_catalog_document,
    parse_catalog_text,
)
from .store import CatalogStore

__all__ = [
    "CatalogLoader",
    "CatalogStore",
    "load_catalog",
    "load_catalog_or_default",
    "parse_catalog_document",
    "parse_catalog_text",
]
