"""
GeneratedStatement model: an immutable (SQL text, parameters) pair.
"""

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# psycopg named placeholder: %(name)s, but not the escaped %%(name)s
PLACEHOLDER_PATTERN = re.compile(r"(?<!%)%\(([^)]+)\)s")


class GeneratedStatement(BaseModel):
    """
    A parameterized statement built for exactly one record (or one table for TRUNCATE).

    Attributes:
        kind: insert, update, delete, truncate, select or count
        table: Persisted table name the statement targets
        sql: Statement text with %(name)s placeholders
        params: Placeholder name -> value
        columns: Persisted columns referenced by the statement
        row_index: Position of the source record in the input, if any
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["insert", "update", "delete", "truncate", "select", "count"]
    table: str
    sql: str = Field(..., min_length=1)
    params: dict[str, Any] = Field(default_factory=dict)
    columns: tuple[str, ...] = ()
    row_index: int | None = None

    @property
    def placeholders(self) -> set[str]:
        """Names of all placeholders referenced in the SQL text."""
        return set(PLACEHOLDER_PATTERN.findall(self.sql))

    def __str__(self) -> str:
        return self.sql
