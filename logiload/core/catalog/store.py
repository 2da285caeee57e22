"""
Process-wide holder for the current mapping catalog.
"""

import threading
from collections.abc import Mapping
from pathlib import Path

from logiload.core.errors import ConfigError
from logiload.core.models import MappingCatalog, TableMapping
from logiload.observability.logger import get_logger

from .loader import load_catalog

logger = get_logger(__name__)


class CatalogStore:
    """
    Holds the current MappingCatalog and swaps it atomically on reload.

    Readers call `current` (or `resolve_table`) and get a complete catalog;
    a reload never exposes a partially built one. A failed reload keeps the
    previous catalog.
    """

    def __init__(self, source: str | Path | Mapping | None = None, catalog: MappingCatalog | None = None):
        self.source = source
        self._lock = threading.Lock()
        if catalog is not None:
            self._catalog = catalog
        elif source is not None:
            self._catalog = load_catalog(source)
        else:
            self._catalog = MappingCatalog()

    @property
    def current(self) -> MappingCatalog:
        return self._catalog

    def resolve_table(self, table_identifier: str) -> TableMapping | None:
        return self._catalog.resolve_table(table_identifier)

    def reload(self, source: str | Path | Mapping | None = None) -> MappingCatalog:
        """
        Parse the catalog again and replace the current one.

        Args:
            source: New source; defaults to the source used at construction

        Raises:
            ConfigError: If no source is known or the new catalog does not load
        """
        source = source if source is not None else self.source
        if source is None:
            raise ConfigError("No catalog source configured for reload")

        try:
            catalog = load_catalog(source)
        except ConfigError:
            logger.error("Catalog reload failed, keeping previous catalog",
                         extra={"catalog_version": self._catalog.version})
            raise

        with self._lock:
            previous = self._catalog
            self._catalog = catalog
            self.source = source

        logger.info(
            f"Catalog reloaded: version {previous.version or '-'} -> {catalog.version or '-'}",
            extra={"tables": list(catalog.mappings)},
        )
        return catalog
