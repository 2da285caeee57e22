"""
RecordValidationResult model representing the outcome of validating a record (ephemeral).
"""

from typing import List

from pydantic import BaseModel, Field, field_validator


class RecordValidationResult(BaseModel):
    """
    Outcome of validating one record (ephemeral, not persisted).

    Attributes:
        row_index: Position of the record in the input
        passed: Overall validation status
        passed_rules: Rules that succeeded
        failed_rules: Rules that failed
        error_messages: One message per failed rule
        lenient_skips: Required checks skipped for lenient fields
    """

    row_index: int | None = None
    passed: bool
    passed_rules: List[str] = Field(default_factory=list)
    failed_rules: List[str] = Field(default_factory=list)
    error_messages: List[str] = Field(default_factory=list)
    lenient_skips: List[str] = Field(default_factory=list)

    @field_validator('failed_rules')
    @classmethod
    def check_passed_consistency(cls, v, info):
        """Validate that passed=True implies failed_rules is empty."""
        if info.data.get('passed') and len(v) > 0:
            raise ValueError("passed=True but failed_rules is not empty")
        return v
