"""
Generic file reader for order sheets (CSV, JSON, Parquet).
"""

from pathlib import Path

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import StructType

from logiload.core.errors import ConfigError

from .csv_reader import CSVReader

SUPPORTED_FORMATS = ("csv", "json", "parquet")


class FileReader:
    """
    Reads a tabular file into a Spark DataFrame whose headers are persisted
    column names.
    """

    def __init__(self, spark: SparkSession, supported_formats: list[str] | None = None):
        """
        Initialize file reader.

        Args:
            spark: Active Spark session
            supported_formats: Formats allowed by the catalog's global settings
        """
        self.spark = spark
        self.csv_reader = CSVReader(spark)
        self.supported_formats = tuple(
            f.lower() for f in (supported_formats or SUPPORTED_FORMATS)
        )

    def read(
        self,
        file_path: str | Path,
        file_format: str = "csv",
        schema: StructType | None = None,
        **options
    ) -> DataFrame:
        """
        Read file into Spark DataFrame.

        Args:
            file_path: Path to file
            file_format: Format (csv, json, parquet)
            schema: Optional explicit schema
            **options: Format-specific options

        Returns:
            Spark DataFrame

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigError: If the format is unsupported or disabled by the catalog
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")

        file_format = file_format.lower()
        if file_format not in SUPPORTED_FORMATS or file_format not in self.supported_formats:
            raise ConfigError(f"Unsupported file format: {file_format}")

        if file_format == "csv":
            return self.csv_reader.read(str(path), schema=schema, **options)
        if file_format == "json":
            reader = self.spark.read
            if schema:
                reader = reader.schema(schema)
            return reader.option("multiLine", str(options.get("multi_line", False)).lower()).json(str(path))
        return self.spark.read.parquet(str(path))
