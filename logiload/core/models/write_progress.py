"""
Progress and summary models emitted by the batch writer.
"""

from enum import Enum

from pydantic import BaseModel, Field


class WriterState(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class WriteProgress(BaseModel):
    """
    Progress after one committed unit.

    `processed` is cumulative; `total` is the number of statements prepared
    for the run. Updates are not evenly spaced.
    """

    table: str
    unit_index: int = Field(..., ge=0)
    unit_count: int = Field(..., ge=0)
    processed: int = Field(..., ge=0)
    total: int = Field(..., ge=0)

    @property
    def percent(self) -> float:
        if self.total == 0:
            return 100.0
        return round(self.processed * 100.0 / self.total, 1)


class WriteSummary(BaseModel):
    table: str
    total_records: int = 0
    accepted: int = 0
    rejected: int = 0
    committed: int = 0
    units_committed: int = 0
    unit_count: int = 0
    cancelled: bool = False
    state: WriterState = WriterState.IDLE
    error: str | None = None
    lenient_skips: int = 0


class WriterStatus(BaseModel):
    """
    Snapshot of a writer's unit sizing.

    Attributes:
        state: Writer state
        batch_size: Unit size the next write starts with (0: one unit)
        current_batch_size: Unit size in use by the running or last write
        min_batch_size / max_batch_size: Clamping bounds (max None: unbounded)
        adaptive: Whether unit size follows process memory between units
        memory_limit_mb: Memory level above which units shrink
        memory_mb: Resident memory of this process, when it can be read
        available_memory_mb: Memory available on the host, when it can be read
    """

    state: WriterState
    batch_size: int
    current_batch_size: int
    min_batch_size: int
    max_batch_size: int | None = None
    adaptive: bool = False
    memory_limit_mb: float | None = None
    memory_mb: float | None = None
    available_memory_mb: float | None = None
