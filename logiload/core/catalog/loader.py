"""
Mapping catalog loading.

Loads the mapping catalog from a YAML (or JSON, which YAML parses) document
and maps every node to the typed catalog models.

Expected format:
```yaml
version: "2.1"
global_settings:
  batch_size: 1000
mappings:
  order_table:
    table_name: orders
    processing_order: 1
    is_active: true
    columns:
      order_number:
        db_column: order_no
        data_type: text
        required: true
        primary_key: true
    additional_columns:
      id:
        db_column: id
        data_type: integer
        auto_increment: true
    validation_rules:
      required_fields: [order_number]
    data_transformations:
      order_number:
        special_handling: trim
```
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from logiload.core.errors import ConfigError
from logiload.core.models import GlobalSettings, MappingCatalog, TableMapping
from logiload.observability.logger import get_logger
from logiload.observability.metrics import catalog_loads_total, increment_counter

logger = get_logger(__name__)


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that refuses duplicate mapping keys instead of keeping the last one."""


def _construct_unique_mapping(loader: _UniqueKeyLoader, node: yaml.MappingNode, deep: bool = False):
    loader.flatten_mapping(node)
    seen: set[Any] = set()
    for key_node, _ in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in seen:
            raise yaml.constructor.ConstructorError(
                "while constructing a mapping",
                node.start_mark,
                f"found duplicate key '{key}'",
                key_node.start_mark,
            )
        seen.add(key)
    return loader.construct_mapping(node, deep=deep)


_UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_unique_mapping
)


def _format_pydantic_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


class CatalogLoader:
    """
    Loads a MappingCatalog from a file.

    Active tables are parsed strictly: any malformed node fails the load.
    Inactive tables that do not parse are skipped with a warning so a
    half-written future mapping does not block today's imports.
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the catalog loader.

        Args:
            config_path: Path to the catalog document

        Raises:
            ConfigError: If the file does not exist
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise ConfigError(f"Mapping catalog file not found: {config_path}")

    def load(self) -> MappingCatalog:
        """
        Read and parse the catalog document.

        Returns:
            Parsed MappingCatalog

        Raises:
            ConfigError: If the document is malformed
        """
        try:
            text = self.config_path.read_text(encoding="utf-8-sig")
        except OSError as e:
            increment_counter(catalog_loads_total, status="error")
            raise ConfigError(f"Cannot read mapping catalog {self.config_path}: {e}") from e
        return parse_catalog_text(text, origin=str(self.config_path))


def parse_catalog_text(text: str, origin: str = "<string>") -> MappingCatalog:
    """
    Parse catalog text (YAML or JSON).

    Raises:
        ConfigError: On syntax errors, duplicate keys or malformed nodes
    """
    try:
        document = yaml.load(text, Loader=_UniqueKeyLoader)
    except yaml.YAMLError as e:
        increment_counter(catalog_loads_total, status="error")
        raise ConfigError(f"Malformed mapping catalog {origin}: {e}") from e

    return parse_catalog_document(document, origin=origin)


def parse_catalog_document(document: Any, origin: str = "<mapping>") -> MappingCatalog:
    """
    Map an already-parsed document onto the catalog models.

    Raises:
        ConfigError: If required structural nodes are missing or malformed
    """
    try:
        catalog = _build_catalog(document, origin)
    except ConfigError:
        increment_counter(catalog_loads_total, status="error")
        raise

    increment_counter(catalog_loads_total, status="success")
    logger.info(
        f"Loaded mapping catalog {origin}: {len(catalog.mappings)} tables",
        extra={
            "catalog_version": catalog.version,
            "tables": list(catalog.mappings),
            "skipped_tables": catalog.skipped_tables,
        },
    )
    return catalog


def _build_catalog(document: Any, origin: str) -> MappingCatalog:
    if not isinstance(document, Mapping):
        raise ConfigError(f"Mapping catalog {origin} must be a mapping at the top level")

    raw_mappings = document.get("mappings")
    if raw_mappings is None:
        raise ConfigError(f"Mapping catalog {origin} must contain a 'mappings' section")
    if not isinstance(raw_mappings, Mapping):
        raise ConfigError(f"'mappings' in {origin} must be a mapping of table identifier to table")

    try:
        global_settings = GlobalSettings.model_validate(document.get("global_settings") or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid global_settings in {origin}: {_format_pydantic_error(e)}") from e

    mappings: dict[str, TableMapping] = {}
    skipped: list[str] = []

    for table_key, raw_table in raw_mappings.items():
        table_key = str(table_key)
        active = _is_active(raw_table)
        try:
            if not isinstance(raw_table, Mapping):
                raise ConfigError(f"Table node must be a mapping, got {type(raw_table).__name__}", table=table_key)
            node = dict(raw_table)
            node.setdefault("mapping_id", table_key)
            mappings[table_key] = TableMapping.model_validate(node)
        except (ValidationError, ConfigError) as e:
            detail = _format_pydantic_error(e) if isinstance(e, ValidationError) else e.message
            if active:
                raise ConfigError(f"Invalid table mapping in {origin}: {detail}", table=table_key) from e
            logger.warning(
                f"Skipping inactive table mapping '{table_key}': {detail}",
                extra={"table": table_key},
            )
            skipped.append(table_key)

    header = {
        key: document.get(key)
        for key in ("version", "description", "created_date", "last_updated")
        if document.get(key) is not None
    }
    try:
        return MappingCatalog(
            **header,
            mappings=mappings,
            global_settings=global_settings,
            skipped_tables=skipped,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid catalog header in {origin}: {_format_pydantic_error(e)}") from e


def _is_active(raw_table: Any) -> bool:
    # Anything that is not explicitly inactive is treated as in use.
    if isinstance(raw_table, Mapping):
        return raw_table.get("is_active", True) is not False
    return True


def load_catalog(source: str | Path | Mapping) -> MappingCatalog:
    """
    Load a catalog from a path, a YAML/JSON string or an already-parsed mapping.

    Raises:
        ConfigError: If the source cannot be loaded
    """
    if isinstance(source, Mapping):
        return parse_catalog_document(source)
    if isinstance(source, Path):
        return CatalogLoader(source).load()
    if isinstance(source, str):
        # Multi-line or brace-started text is a document, anything else a path.
        stripped = source.lstrip()
        if "\n" in source or stripped.startswith("{"):
            return parse_catalog_text(source)
        return CatalogLoader(source).load()
    raise ConfigError(f"Unsupported catalog source type: {type(source).__name__}")


def load_catalog_or_default(source: str | Path | Mapping | None) -> MappingCatalog:
    """
    Load a catalog, falling back to an empty one on ConfigError.

    With an empty catalog every table is resolved through fallback
    introspection. Callers that must not proceed without a catalog use
    load_catalog() instead.
    """
    if source is None:
        logger.warning("No mapping catalog configured, using empty catalog")
        return MappingCatalog()
    try:
        return load_catalog(source)
    except ConfigError as e:
        logger.error(f"Mapping catalog unavailable, using empty catalog: {e}")
        return MappingCatalog()
