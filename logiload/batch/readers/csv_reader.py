"""
CSV reader for order sheet exports.
"""

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import StructType

# Options every order export is read with.
BASE_OPTIONS = {
    "mode": "PERMISSIVE",
    "ignoreLeadingWhiteSpace": "true",
    "ignoreTrailingWhiteSpace": "true",
}


class CSVReader:
    """
    Reads order CSV exports with Spark.

    Columns are read as strings unless a schema is given: order numbers,
    phone numbers and zip codes keep their leading zeros, and typing is
    left to the adapter's data-type conversions.

    Exports from spreadsheet tools often carry padded header cells and
    trailing blank lines; headers are trimmed and all-empty rows dropped.
    """

    def __init__(self, spark: SparkSession):
        self.spark = spark

    def read(
        self,
        file_path: str,
        schema: StructType | None = None,
        header: bool = True,
        delimiter: str = ",",
        encoding: str = "UTF-8",
        infer_schema: bool = False,
    ) -> DataFrame:
        """
        Read a CSV file into a Spark DataFrame.

        Args:
            file_path: Path to CSV file
            schema: Optional explicit schema
            header: Whether the file has a header row with persisted column names
            delimiter: Field delimiter
            encoding: File encoding
            infer_schema: Let Spark infer column types

        Returns:
            Spark DataFrame
        """
        options = dict(
            BASE_OPTIONS,
            header=str(header).lower(),
            delimiter=delimiter,
            encoding=encoding,
        )
        reader = self.spark.read.options(**options)
        if schema:
            reader = reader.schema(schema)
        elif infer_schema:
            reader = reader.option("inferSchema", "true")

        df = reader.csv(file_path)
        if header:
            df = df.toDF(*[name.strip() for name in df.columns])
        return df.na.drop(how="all")
