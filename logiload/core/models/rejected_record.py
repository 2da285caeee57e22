"""
RejectedRecord model: diagnostics for a record excluded from a write.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


class RejectedRecord(BaseModel):
    """
    A record excluded from the committed set, with the reasons.

    Attributes:
        table: Table identifier the record was headed for
        row_index: Position of the record in the input
        stage: Where it was rejected: adapter, validator or builder
        reasons: Human-readable rejection reasons
        failed_rules: Rule names that failed (validator stage)
        payload: The record as it was when rejected
        rejected_at: When the rejection happened
    """

    table: str
    row_index: int | None = None
    stage: Literal["adapter", "validator", "builder"]
    reasons: list[str] = Field(..., min_length=1)
    failed_rules: list[str] = Field(default_factory=list)
    payload: dict[str, Any] = Field(default_factory=dict)
    rejected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("payload", mode="before")
    @classmethod
    def copy_payload(cls, v):
        return dict(v) if v is not None else {}
