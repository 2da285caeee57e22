"""
Order import pipeline.

Coordinates the flow: read -> adapt -> (truncate) -> validate + build -> write
"""

import threading
import time
from pathlib import Path

from pydantic import BaseModel, Field
from pyspark.sql import SparkSession

from logiload.config import Settings
from logiload.core.errors import LogiloadError
from logiload.core.models import MappingCatalog
from logiload.core.rules.rejections import (
    CollectingRejectionSink,
    FanOutRejectionSink,
    RejectionSink,
)
from logiload.core.transform import TabularAdapter
from logiload.observability.logger import get_logger
from logiload.warehouse.batch_writer import BatchWriter, ProgressSink
from logiload.warehouse.connection import DatabaseConnectionPool
from logiload.warehouse.repository import OrderRepository

from .readers import FileReader

logger = get_logger(__name__)


class ImportResult(BaseModel):
    """Outcome of importing one file into one table."""

    table: str
    file_path: str
    total_rows: int = 0
    adapted: int = 0
    committed: int = 0
    rejected: int = 0
    rejected_by_stage: dict[str, int] = Field(default_factory=dict)
    lenient_skips: int = 0
    truncated: bool = False
    cancelled: bool = False
    duration_seconds: float = 0.0


class ImportPipeline:
    """
    Imports order files into catalog-described tables.

    Flow:
    1. Read the file with Spark (headers are persisted column names)
    2. Adapt rows into records through the table mapping
    3. Optionally truncate the target table
    4. Validate, build and write through the batch writer
    """

    def __init__(
        self,
        spark: SparkSession,
        pool: DatabaseConnectionPool,
        catalog: MappingCatalog,
        settings: Settings,
    ):
        """
        Initialize the import pipeline.

        Args:
            spark: Active Spark session
            pool: Database connection pool
            catalog: Mapping catalog
            settings: Runtime settings
        """
        self.spark = spark
        self.pool = pool
        self.catalog = catalog
        self.settings = settings

        self.file_reader = FileReader(spark, catalog.global_settings.supported_file_formats)
        self.writer = BatchWriter.from_settings(pool, catalog, settings)
        self.repository = OrderRepository(
            pool,
            catalog,
            default_table=settings.default_table,
            writer=self.writer,
            allow_fallback=settings.allow_fallback,
        )

    def process_file(
        self,
        file_path: str | Path,
        table: str | None = None,
        file_format: str = "csv",
        truncate_first: bool = False,
        progress: ProgressSink | None = None,
        rejection_sink: RejectionSink | None = None,
        cancel_event: threading.Event | None = None,
        **read_options
    ) -> ImportResult:
        """
        Import one file.

        Args:
            file_path: Path to input file
            table: Table identifier (defaults to the configured default table)
            file_format: File format (csv, json, parquet)
            truncate_first: Empty the table before writing
            progress: Progress sink passed to the writer
            rejection_sink: Additional sink for rejected records
            cancel_event: Cooperative cancellation signal
            **read_options: Reader options

        Returns:
            ImportResult

        Raises:
            LogiloadError: If the truncate fails or the write aborts
        """
        table = table or self.settings.default_table
        started = time.time()
        collected = CollectingRejectionSink()
        sink = FanOutRejectionSink(collected, rejection_sink)

        logger.info(f"Importing {file_path} into '{table}'", extra={"table": table, "file_format": file_format})

        df = self.file_reader.read(file_path, file_format=file_format, **read_options)
        rows = df.collect()

        mapping = self.catalog.resolve_table(table)
        if mapping is not None:
            indexed = TabularAdapter(mapping, table).adapt_indexed(rows, sink)
        else:
            logger.warning(
                f"No catalog entry for '{table}', writing rows as-is",
                extra={"table": table},
            )
            indexed = list(enumerate(rows))
        row_indices = [index for index, _ in indexed]
        records = [record for _, record in indexed]

        truncated = False
        if truncate_first:
            if not self.repository.truncate(table):
                raise LogiloadError("Truncate failed, import aborted before writing", table=table)
            truncated = True

        committed = self.writer.write(
            table,
            records,
            progress=progress,
            cancel_event=cancel_event,
            rejection_sink=sink,
            row_indices=row_indices,
        )
        summary = self.writer.last_summary

        result = ImportResult(
            table=table,
            file_path=str(file_path),
            total_rows=len(rows),
            adapted=len(records),
            committed=committed,
            rejected=len(collected),
            rejected_by_stage=collected.by_stage(),
            lenient_skips=summary.lenient_skips if summary else 0,
            truncated=truncated,
            cancelled=bool(summary and summary.cancelled),
            duration_seconds=round(time.time() - started, 3),
        )
        logger.info(
            f"Import of {file_path} complete: {result.committed}/{result.total_rows} rows committed",
            extra=result.model_dump(),
        )
        return result
