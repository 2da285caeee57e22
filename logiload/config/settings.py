"""
Runtime settings for logiload.

Values come from explicit arguments first, then environment variables,
optionally seeded from a .env file. Settings are built once at startup
and passed into the components that need them; nothing in the write path
reads the environment.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from logiload.core.errors import ConfigError


class DatabaseSettings(BaseModel):
    host: str = "localhost"
    port: int = 5432
    database: str = "logistics"
    user: str = "logiload"
    password: str = Field(..., min_length=1)
    min_size: int = Field(1, ge=1)
    max_size: int = Field(5, ge=1)
    timeout: float = Field(30.0, gt=0)


class Settings(BaseModel):
    """
    Application settings.

    Attributes:
        database: Connection settings
        catalog_path: Mapping catalog document
        default_table: Table identifier used when callers do not name one
        batch_size: Unit size override (None: use the catalog's batch_size)
        single_transaction: Write the whole record set as one unit
        max_retries: Retries per unit for transient store failures
        retry_delays: Delay in seconds before each retry
        allow_fallback: Allow sample-record introspection for unmapped tables
        min_batch_size / max_batch_size: Bounds non-zero unit sizes are clamped to
        memory_limit_mb: Process memory level that turns on adaptive unit sizing
    """

    database: DatabaseSettings
    catalog_path: Path | None = None
    default_table: str = "order_table"
    batch_size: int | None = Field(None, ge=0)
    single_transaction: bool = False
    max_retries: int = Field(3, ge=0)
    retry_delays: tuple[float, ...] = (1.0, 2.0, 4.0)
    allow_fallback: bool = True
    min_batch_size: int = Field(1, ge=1)
    max_batch_size: int | None = Field(2000, ge=1)
    memory_limit_mb: float | None = Field(None, gt=0)

    @field_validator("retry_delays", mode="before")
    @classmethod
    def parse_delays(cls, v):
        if isinstance(v, str):
            return tuple(float(part) for part in v.split(",") if part.strip())
        return v

    @model_validator(mode="after")
    def check_bounds(self) -> "Settings":
        if self.max_batch_size is not None and self.max_batch_size < self.min_batch_size:
            raise ValueError("max_batch_size must be >= min_batch_size")
        return self

    @classmethod
    def from_env(cls, env_file: str | Path | None = None, **overrides) -> "Settings":
        """
        Build settings from the environment.

        Args:
            env_file: Optional .env file loaded before reading variables
            **overrides: Explicit values that win over the environment

        Raises:
            ConfigError: If the database password is missing or a value is invalid
        """
        if env_file is not None:
            load_dotenv(env_file, override=False)

        password = os.getenv("DB_PASSWORD")
        if not password and "database" not in overrides:
            raise ConfigError(
                "Database password must be provided. "
                "Set DB_PASSWORD environment variable or pass database settings explicitly."
            )

        try:
            values: dict = {
                "database": {
                    "host": os.getenv("DB_HOST", "localhost"),
                    "port": int(os.getenv("DB_PORT", "5432")),
                    "database": os.getenv("DB_NAME", "logistics"),
                    "user": os.getenv("DB_USER", "logiload"),
                    "password": password,
                    "min_size": int(os.getenv("DB_POOL_MIN", "1")),
                    "max_size": int(os.getenv("DB_POOL_MAX", "5")),
                },
                "catalog_path": os.getenv("LOGILOAD_CATALOG"),
                "default_table": os.getenv("LOGILOAD_DEFAULT_TABLE", "order_table"),
                "single_transaction": os.getenv("LOGILOAD_SINGLE_TRANSACTION", "false").lower() in ("1", "true", "yes"),
                "max_retries": int(os.getenv("LOGILOAD_MAX_RETRIES", "3")),
                "allow_fallback": os.getenv("LOGILOAD_ALLOW_FALLBACK", "true").lower() in ("1", "true", "yes"),
            }
            if os.getenv("LOGILOAD_BATCH_SIZE"):
                values["batch_size"] = int(os.getenv("LOGILOAD_BATCH_SIZE"))
            if os.getenv("LOGILOAD_RETRY_DELAYS"):
                values["retry_delays"] = os.getenv("LOGILOAD_RETRY_DELAYS")
            if os.getenv("LOGILOAD_MIN_BATCH_SIZE"):
                values["min_batch_size"] = int(os.getenv("LOGILOAD_MIN_BATCH_SIZE"))
            if os.getenv("LOGILOAD_MAX_BATCH_SIZE"):
                values["max_batch_size"] = int(os.getenv("LOGILOAD_MAX_BATCH_SIZE"))
            if os.getenv("LOGILOAD_MEMORY_LIMIT_MB"):
                values["memory_limit_mb"] = float(os.getenv("LOGILOAD_MEMORY_LIMIT_MB"))
            values.update(overrides)
            return cls.model_validate(values)
        except ValueError as e:
            raise ConfigError(f"Invalid settings: {e}") from e
