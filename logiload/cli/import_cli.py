"""
Command-line interface for order imports.

Usage:
    logiload import --input <file_path> [--table <table>] [options]
    logiload truncate [--table <table>]
    logiload catalog show [--catalog <path>]
    logiload catalog check [--catalog <path>]
"""

import argparse
import json
import os
import sys
from pathlib import Path

from pyspark.sql import SparkSession

from logiload.batch import ImportPipeline
from logiload.batch.readers import FileReader
from logiload.config import Settings
from logiload.core.catalog import load_catalog
from logiload.core.errors import ConfigError, LogiloadError
from logiload.core.models import MappingCatalog, WriteProgress
from logiload.core.rules import CollectingRejectionSink, LoggingRejectionSink
from logiload.core.rules.rejections import FanOutRejectionSink
from logiload.core.transform import TabularAdapter
from logiload.observability.logger import get_logger
from logiload.observability.metrics import start_metrics_server
from logiload.warehouse.batch_writer import BatchWriter
from logiload.warehouse.connection import DatabaseConnectionPool
from logiload.warehouse.quarantine import QuarantineRejectionSink
from logiload.warehouse.repository import OrderRepository

logger = get_logger(__name__)

DEFAULT_CATALOG = "config/column_mapping.yaml"


def create_spark_session(app_name: str = "logiload-import") -> SparkSession:
    """Local Spark session; only used to read the export file."""
    spark = (
        SparkSession.builder
        .appName(app_name)
        .master(os.getenv("SPARK_MASTER", "local[*]"))
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )
    spark.sparkContext.setLogLevel(os.getenv("SPARK_LOG_LEVEL", "ERROR"))
    return spark


def _catalog_path(args) -> Path:
    return Path(args.catalog or os.getenv("LOGILOAD_CATALOG") or DEFAULT_CATALOG)


def _settings(args) -> Settings:
    overrides = {"catalog_path": _catalog_path(args)}
    if getattr(args, "batch_size", None) is not None:
        overrides["batch_size"] = args.batch_size
    return Settings.from_env(env_file=args.env_file, **overrides)


def _log_progress(update: WriteProgress) -> None:
    logger.info(
        f"Unit {update.unit_index}/{update.unit_count} committed: "
        f"{update.processed}/{update.total} rows ({update.percent}%)",
        extra={"table": update.table},
    )


def import_command(args) -> int:
    """
    Import one file into one table.

    Returns:
        Process exit code
    """
    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    settings = _settings(args)
    catalog = load_catalog(settings.catalog_path)
    table = args.table or settings.default_table

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    spark = create_spark_session(f"logiload-import-{table}")
    try:
        if args.dry_run:
            return _dry_run(spark, catalog, settings, input_path, table, args.format)

        pool = DatabaseConnectionPool.from_settings(settings.database)
        pool.open()
        try:
            pipeline = ImportPipeline(spark, pool, catalog, settings)
            quarantine = QuarantineRejectionSink(pool) if args.quarantine else None
            try:
                result = pipeline.process_file(
                    input_path,
                    table=table,
                    file_format=args.format,
                    truncate_first=args.truncate,
                    progress=_log_progress,
                    rejection_sink=FanOutRejectionSink(LoggingRejectionSink(), quarantine),
                )
            finally:
                if quarantine is not None:
                    quarantine.flush()
        finally:
            pool.close()
    except LogiloadError as e:
        logger.error(f"Import failed: {e}")
        return 1
    finally:
        spark.stop()

    logger.info("=" * 60)
    logger.info("IMPORT COMPLETE")
    logger.info("=" * 60)
    logger.info(f"Table: {result.table}")
    logger.info(f"Rows read: {result.total_rows}")
    logger.info(f"Rows committed: {result.committed}")
    logger.info(f"Rows rejected: {result.rejected} {result.rejected_by_stage}")
    logger.info(f"Missing phone/zip values let through: {result.lenient_skips}")
    if result.cancelled:
        logger.info("Import was cancelled before all units were written")
    logger.info("=" * 60)
    return 0


def _dry_run(spark, catalog: MappingCatalog, settings: Settings, input_path: Path, table: str, file_format: str) -> int:
    """Read, adapt, validate and build without touching the store."""
    logger.info("DRY RUN MODE: No data will be written to database")
    collected = CollectingRejectionSink()
    sink = FanOutRejectionSink(collected, LoggingRejectionSink())

    df = FileReader(spark, catalog.global_settings.supported_file_formats).read(
        input_path, file_format=file_format
    )
    rows = df.collect()
    mapping = catalog.resolve_table(table)
    records = TabularAdapter(mapping, table).adapt_rows(rows, sink) if mapping else rows

    writer = BatchWriter(None, catalog, allow_fallback=settings.allow_fallback)
    statements = writer.prepare(table, records, sink)

    logger.info(f"Rows read: {len(rows)}")
    logger.info(f"Statements prepared: {len(statements)}")
    logger.info(f"Rows rejected: {len(collected)} {collected.by_stage()}")
    return 0


def truncate_command(args) -> int:
    settings = _settings(args)
    catalog = load_catalog(settings.catalog_path)
    table = args.table or settings.default_table

    with DatabaseConnectionPool.from_settings(settings.database) as pool:
        ok = OrderRepository(pool, catalog, default_table=table).truncate()
    return 0 if ok else 1


def catalog_command(args) -> int:
    """Show or check the mapping catalog."""
    path = _catalog_path(args)
    try:
        catalog = load_catalog(path)
    except ConfigError as e:
        logger.error(f"Catalog check failed: {e}")
        return 1

    if args.action == "check":
        logger.info(
            f"Catalog {path} OK: version {catalog.version or '-'}, "
            f"{len(catalog.mappings)} tables, {len(catalog.skipped_tables)} skipped"
        )
        return 0

    overview = {
        "version": catalog.version,
        "description": catalog.description,
        "batch_size": catalog.batch_size,
        "skipped_tables": catalog.skipped_tables,
        "tables": [
            {
                "mapping_id": m.mapping_id,
                "table_name": m.table_name,
                "processing_order": m.processing_order,
                "is_active": m.is_active,
                "columns": {name: c.db_column for name, c in m.columns.items()},
                "additional_columns": {name: c.db_column for name, c in m.additional_columns.items()},
                "primary_key": m.primary_key_fields,
            }
            for m in sorted(catalog.mappings.values(), key=lambda m: m.processing_order)
        ],
    }
    print(json.dumps(overview, indent=2, ensure_ascii=False))
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="logiload",
        description="Mapping-driven order import",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import a CSV export into the default table
  logiload import --input data/orders.csv

  # Replace the table contents
  logiload import --input data/orders.csv --table order_table --truncate

  # Validate and build statements only
  logiload import --input data/orders.csv --dry-run

  # Check the mapping catalog
  logiload catalog check --catalog config/column_mapping.yaml
        """
    )
    parser.add_argument("--env-file", default=None, help="Optional .env file to load")
    parser.add_argument("--catalog", default=None, help=f"Mapping catalog (default: {DEFAULT_CATALOG})")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    import_parser = subparsers.add_parser("import", help="Import an order file")
    import_parser.add_argument("--input", required=True, help="Path to input file")
    import_parser.add_argument("--table", default=None, help="Table identifier (catalog key or table name)")
    import_parser.add_argument(
        "--format",
        default="csv",
        choices=["csv", "json", "parquet"],
        help="Input file format (default: csv)"
    )
    import_parser.add_argument("--truncate", action="store_true", help="Empty the table before importing")
    import_parser.add_argument("--batch-size", type=int, default=None, help="Rows per transaction")
    import_parser.add_argument("--quarantine", action="store_true", help="Store rejected rows in import_rejection")
    import_parser.add_argument("--dry-run", action="store_true", help="Validate without writing to database")
    import_parser.add_argument("--metrics-port", type=int, default=None, help="Expose Prometheus metrics on this port")

    truncate_parser = subparsers.add_parser("truncate", help="Empty a table")
    truncate_parser.add_argument("--table", default=None, help="Table identifier")

    catalog_parser = subparsers.add_parser("catalog", help="Inspect the mapping catalog")
    catalog_parser.add_argument("action", choices=["show", "check"])

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "import":
            code = import_command(args)
        elif args.command == "truncate":
            code = truncate_command(args)
        else:
            code = catalog_command(args)
    except ConfigError as e:
        logger.error(str(e))
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
