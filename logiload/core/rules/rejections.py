"""
Diagnostics channel for rejected records.

Rejected records are excluded from a write and never retried; a sink makes
each exclusion observable.
"""

from typing import Protocol, runtime_checkable

from logiload.core.models import RejectedRecord
from logiload.observability.logger import get_logger
from logiload.observability.metrics import record_rejection

logger = get_logger(__name__)


@runtime_checkable
class RejectionSink(Protocol):
    def reject(self, rejection: RejectedRecord) -> None:
        ...


class CollectingRejectionSink:
    """Keeps rejections in memory (reports, tests, CLI summaries)."""

    def __init__(self):
        self.rejections: list[RejectedRecord] = []

    def reject(self, rejection: RejectedRecord) -> None:
        self.rejections.append(rejection)

    def __len__(self) -> int:
        return len(self.rejections)

    def by_stage(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for rejection in self.rejections:
            counts[rejection.stage] = counts.get(rejection.stage, 0) + 1
        return counts


class LoggingRejectionSink:
    """Logs each rejection as a structured warning."""

    def reject(self, rejection: RejectedRecord) -> None:
        logger.warning(
            f"Record rejected at row {rejection.row_index} ({rejection.stage}): "
            f"{'; '.join(rejection.reasons)}",
            extra={
                "table": rejection.table,
                "row_index": rejection.row_index,
                "stage": rejection.stage,
                "failed_rules": rejection.failed_rules,
            },
        )


class FanOutRejectionSink:
    """Forwards every rejection to several sinks."""

    def __init__(self, *sinks: RejectionSink):
        self.sinks = [s for s in sinks if s is not None]

    def reject(self, rejection: RejectedRecord) -> None:
        for sink in self.sinks:
            sink.reject(rejection)


def emit_rejection(sink: RejectionSink | None, rejection: RejectedRecord) -> None:
    """Count a rejection and forward it to the sink, if any."""
    record_rejection(rejection.table, rejection.stage)
    if sink is not None:
        sink.reject(rejection)
