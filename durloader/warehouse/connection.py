"""
PostgreSQL connection management using psycopg3

ConnectionManager hands out pooled connections wrapped in ConnectionHandle
objects, retrying failed acquisitions with a fixed or exponential delay and
always giving the connection back to the pool.
"""
import itertools
import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from durloader.core.errors import StoreConnectionError
from durloader.observability import metrics
from durloader.observability.logger import get_logger

HEALTH_QUERY = "SELECT 1"


class ConnectionHandle:
    """
    A pooled connection lent to exactly one holder.

    The handle is only valid inside the ConnectionManager.acquire() block
    that produced it.
    """

    def __init__(self, connection: psycopg.Connection, handle_id: int):
        self._connection = connection
        self.handle_id = handle_id
        self.released = False

    @property
    def connection(self) -> psycopg.Connection:
        if self.released:
            raise RuntimeError(f"Connection handle {self.handle_id} has already been released")
        return self._connection

    def __repr__(self) -> str:
        state = "released" if self.released else "held"
        return f"ConnectionHandle(id={self.handle_id}, {state})"


class ConnectionManager:
    """
    Scoped access to a psycopg connection pool with bounded retry

    Every acquisition makes up to max_retries + 1 attempts. Running out of
    attempts raises StoreConnectionError; the caller decides whether that
    ends the run or only the current batch.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 5432,
        database: str = "dur",
        user: str = "durloader",
        password: str | None = None,
        min_size: int = 1,
        max_size: int = 4,
        connect_timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        backoff: float = 1.0,
        pool_factory: Callable[..., Any] = ConnectionPool,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        Initialize the connection manager

        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Database user
            password: Database password (required)
            min_size: Minimum pool size
            max_size: Maximum pool size
            connect_timeout: Seconds one connection attempt may take
            max_retries: Retries after the first failed attempt
            retry_delay: Delay before the first retry, in seconds
            backoff: Multiplier applied to the delay after each retry
                (1.0 keeps it fixed)
            pool_factory: Pool class, replaceable in tests
            sleep: Sleep function, replaceable in tests
            logger: Logger for connection diagnostics
        """
        if not password:
            raise ValueError(
                "Database password must be provided. "
                "Set DB_PASSWORD environment variable or the database.password setting."
            )
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if backoff < 1.0:
            raise ValueError(f"backoff must be >= 1.0, got {backoff}")

        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.min_size = min_size
        self.max_size = max(max_size, min_size)
        self.connect_timeout = connect_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.backoff = backoff
        self.pool_factory = pool_factory
        self.sleep = sleep
        self.logger = logger or get_logger("durloader.connection")

        self.conninfo = make_conninfo(
            host=host,
            port=port,
            dbname=database,
            user=user,
            password=password,
            connect_timeout=max(1, int(connect_timeout)),
        )
        self.safe_conninfo = f"host={host} port={port} dbname={database} user={user}"

        self._pool: Any = None
        self._handle_ids = itertools.count(1)

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "ConnectionManager":
        """
        Build a manager from LoaderSettings

        Args:
            settings: LoaderSettings (database and bulk_load sections are used)
            **kwargs: Overrides such as pool_factory or logger
        """
        db = settings.database
        bulk = settings.bulk_load
        options = {
            "host": db.host,
            "port": db.port,
            "database": db.name,
            "user": db.user,
            "password": db.password.get_secret_value() if db.password else None,
            "min_size": db.min_pool_size,
            "max_size": max(db.max_pool_size, bulk.max_workers),
            "connect_timeout": db.connect_timeout,
            "max_retries": bulk.max_connection_retries,
            "retry_delay": bulk.retry_delay,
            "backoff": bulk.retry_backoff,
        }
        options.update(kwargs)
        return cls(**options)

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def open(self) -> None:
        """
        Create the pool; connections are established on first acquisition
        """
        if self._pool is not None:
            return

        self.logger.info(
            f"Opening connection pool to {self.safe_conninfo}",
            extra={"min_size": self.min_size, "max_size": self.max_size},
        )
        # Autocommit: writes open their own transaction blocks
        self._pool = self.pool_factory(
            conninfo=self.conninfo,
            min_size=self.min_size,
            max_size=self.max_size,
            timeout=self.connect_timeout,
            open=False,
            kwargs={"row_factory": dict_row, "autocommit": True},
        )
        self._pool.open()

    def close(self) -> None:
        """Close the pool"""
        if self._pool is not None:
            self._pool.close()
            self._pool = None
            self.logger.info(f"Closed connection pool to {self.safe_conninfo}")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)"""
        return self.retry_delay * (self.backoff ** (attempt - 1))

    def health_probe(self, handle: ConnectionHandle) -> bool:
        """
        Run a trivial query on the handle's connection

        Raises:
            psycopg.Error: If the connection is unusable
        """
        row = handle.connection.execute(HEALTH_QUERY).fetchone()
        return row is not None

    @contextmanager
    def acquire(self, probe: bool = False) -> Iterator[ConnectionHandle]:
        """
        Borrow a connection for the duration of the block

        Args:
            probe: Run the health probe as part of each attempt

        Yields:
            ConnectionHandle owned by the caller until the block exits

        Raises:
            RuntimeError: If the manager has not been opened
            StoreConnectionError: If every attempt failed
        """
        if self._pool is None:
            raise RuntimeError("Connection pool is not open. Call open() first.")

        connection = self._connect(probe)
        handle = ConnectionHandle(connection, next(self._handle_ids))
        try:
            yield handle
        finally:
            handle.released = True
            self._pool.putconn(connection)

    def _connect(self, probe: bool) -> psycopg.Connection:
        attempts = self.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            connection = None
            try:
                connection = self._pool.getconn(timeout=self.connect_timeout)
                if probe:
                    self.health_probe(ConnectionHandle(connection, 0))
                return connection
            except psycopg.Error as e:
                last_error = e
                if connection is not None:
                    self._pool.putconn(connection)

            if attempt < attempts:
                delay = self.delay_for(attempt)
                metrics.increment_counter(metrics.connection_retries_total, outcome="retry")
                self.logger.warning(
                    f"Connection attempt {attempt}/{attempts} to {self.safe_conninfo} failed: "
                    f"{last_error}; retrying in {delay:.1f}s",
                    extra={"attempt": attempt, "max_attempts": attempts},
                )
                self.sleep(delay)

        metrics.increment_counter(metrics.connection_retries_total, outcome="exhausted")
        self.logger.error(
            f"Could not connect to {self.safe_conninfo} after {attempts} attempts: {last_error}",
            extra={"max_attempts": attempts},
        )
        raise StoreConnectionError(
            f"Failed to connect to database after {attempts} attempts: {last_error}",
            attempts=attempts,
        ) from last_error

    def check_health(self) -> dict[str, Any]:
        """
        Probe the database once and describe the result

        Returns:
            Dictionary with healthy flag, target and server version or error
        """
        try:
            with self.acquire(probe=True) as handle:
                version = handle.connection.execute("SHOW server_version").fetchone()
        except StoreConnectionError as e:
            return {"healthy": False, "target": self.safe_conninfo, "error": str(e)}

        return {
            "healthy": True,
            "target": self.safe_conninfo,
            "server_version": version["server_version"] if version else None,
        }

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
