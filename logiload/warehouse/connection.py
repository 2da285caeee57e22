"""
PostgreSQL connection pool for the order store (psycopg 3 + psycopg_pool).

The pool is built from explicit settings and handed to the writer,
repository and quarantine sink; nothing looks a pool up globally.
Connections return rows as dicts and never autocommit: whoever borrows a
connection decides when its transaction commits.
"""
import time
from contextlib import contextmanager
from typing import Any

from psycopg import OperationalError
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout

from logiload.config import DatabaseSettings
from logiload.core.errors import ConfigError
from logiload.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseConnectionPool:
    """
    Lazily opened psycopg connection pool.

    Usage:
        with DatabaseConnectionPool.from_settings(settings.database) as pool:
            rows = pool.execute_query('SELECT COUNT(*) AS count FROM "orders"')
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "logistics",
        user: str = "logiload",
        password: str | None = None,
        min_size: int = 1,
        max_size: int = 5,
        timeout: float = 30.0,
        conninfo: str | None = None,
    ) -> None:
        """
        Args:
            host, port, database, user, password: Connection parameters
            min_size, max_size: Pool bounds
            timeout: Seconds to wait for a connection (also the connect timeout)
            conninfo: Ready-made libpq connection string, used instead of the
                individual connection parameters

        Raises:
            ConfigError: If neither a password nor a conninfo is given
        """
        if not password and not conninfo:
            raise ConfigError("Database password must be provided.")

        self.host = host
        self.database = database
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self.conninfo = conninfo or make_conninfo(
            host=host,
            port=port,
            dbname=database,
            user=user,
            password=password,
            connect_timeout=int(timeout),
        )
        self._pool: ConnectionPool | None = None

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> "DatabaseConnectionPool":
        return cls(
            host=settings.host,
            port=settings.port,
            database=settings.database,
            user=settings.user,
            password=settings.password,
            min_size=settings.min_size,
            max_size=settings.max_size,
            timeout=settings.timeout,
        )

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def open(self, max_retries: int = 3, retry_delay: float = 2.0) -> None:
        """
        Open the pool, waiting for min_size connections.

        The database container or server may still be starting, so failed
        attempts are retried `max_retries` times in total.

        Raises:
            OperationalError: If the store stays unreachable
        """
        if self._pool is not None:
            return

        last_error: Exception | None = None
        for attempt in range(1, max_retries + 1):
            pool = ConnectionPool(
                conninfo=self.conninfo,
                min_size=self.min_size,
                max_size=self.max_size,
                timeout=self.timeout,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            try:
                pool.open(wait=True, timeout=self.timeout)
            except (OperationalError, PoolTimeout) as e:
                pool.close()
                last_error = e
                logger.warning(
                    f"Store not reachable (attempt {attempt}/{max_retries}): {e}",
                    extra={"host": self.host, "database": self.database},
                )
                if attempt < max_retries:
                    time.sleep(retry_delay)
                continue

            self._pool = pool
            logger.info(
                f"Connection pool open ({self.min_size}-{self.max_size} connections)",
                extra={"host": self.host, "database": self.database},
            )
            return

        raise OperationalError(
            f"Could not reach {self.host}/{self.database} after {max_retries} attempts: {last_error}"
        ) from last_error

    def close(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        pool.close()
        logger.info("Connection pool closed", extra={"database": self.database})

    @contextmanager
    def get_connection(self):
        """
        Borrow a connection; it goes back to the pool on exit.

        Raises:
            RuntimeError: If the pool has not been opened
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")
        with self._pool.connection() as conn:
            yield conn

    @contextmanager
    def get_cursor(self):
        """Cursor on a borrowed connection (read paths)."""
        with self.get_connection() as conn, conn.cursor() as cur:
            yield cur

    def execute_query(self, query: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run a read statement and return its rows as dicts."""
        with self.get_cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def execute_command(self, command: str, params: dict[str, Any] | None = None) -> int:
        """
        Run one data-changing statement in its own transaction.

        Returns:
            Affected row count reported by the store
        """
        with self.get_connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(command, params)
                    affected = cur.rowcount
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return affected

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
