"""
Record validation policy and rejected-record diagnostics.
"""

from .record_validator import RecordValidator
from .rejections import (
    CollectingRejectionSink,
    FanOutRejectionSink,
    LoggingRejectionSink,
    RejectionSink,
    emit_rejection,
)

__all__ = [
    "RecordValidator",
    "RejectionSink",
    "CollectingRejectionSink",
    "LoggingRejectionSink",
    "FanOutRejectionSink",
    "emit_rejection",
]
