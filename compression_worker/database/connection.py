from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg_pool import ConnectionPool

from compression_worker.config.settings import Settings


def build_conninfo(settings: Settings) -> str:
    """Build a libpq connection string from settings."""
    return (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password}"
    )


class Database:
    """Owns the connection pool. Lifecycle is managed by the process entry point."""

    def __init__(self, settings: Settings) -> None:
        self._conninfo = build_conninfo(settings)
        self._max_size = settings.db_pool_max_size
        self._pool: ConnectionPool | None = None

    @property
    def conninfo(self) -> str:
        return self._conninfo

    def init(self) -> None:
        """Open the pool and wait until at least one connection is usable."""
        if self._pool is not None:
            return
        pool = ConnectionPool(
            self._conninfo, min_size=1, max_size=self._max_size, open=False
        )
        pool.open(wait=True)
        self._pool = pool

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool = None

    @contextmanager
    def connection(self) -> Generator[psycopg.Connection[Any], None, None]:
        """Yield a connection from the pool. Caller manages commit/rollback."""
        if self._pool is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        with self._pool.connection() as conn:
            yield conn

    def connect_listener(self, connect_timeout: int) -> psycopg.Connection[Any]:
        """Open a dedicated autocommit connection, outside the pool, for LISTEN."""
        return psycopg.connect(
            self._conninfo, autocommit=True, connect_timeout=connect_timeout
        )
