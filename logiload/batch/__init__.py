"""
Spark batch import.
"""

from .pipeline import ImportPipeline, ImportResult
from .readers import CSVReader, FileReader

__all__ = [
    "ImportPipeline",
    "ImportResult",
    "CSVReader",
    "FileReader",
]
