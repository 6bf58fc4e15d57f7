"""
Pytest configuration and fixtures for durloader tests

This module provides shared fixtures for unit, integration, and E2E tests.
Unit tests run against in-memory stand-ins for the connection pool, the
bulk writer and the target table checks; integration and E2E tests use a
PostgreSQL container.
"""
from contextlib import contextmanager
from typing import Generator

import psycopg
import pytest
from psycopg_pool import PoolTimeout
from testcontainers.postgres import PostgresContainer

from durloader.config.settings import BulkLoadSettings, DatabaseSettings, LoaderSettings
from durloader.core.errors import BatchWriteError
from durloader.warehouse.bulk_insert import BulkWriter
from durloader.warehouse.connection import ConnectionManager
from durloader.warehouse.schema_mgmt import TargetSchemaManager


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# IN-MEMORY STAND-INS
# =======================

class FakeResult:
    def __init__(self, rows=None):
        self.rows = rows or []
        self.rowcount = len(self.rows)

    def fetchone(self):
        return self.rows[0] if self.rows else None

    def fetchall(self):
        return list(self.rows)


class FakeConnection:
    """
    Answers the health probe and SHOW server_version.

    insert_error, when given, is raised by any INSERT statement.
    """

    def __init__(self, broken: bool = False, insert_error: Exception | None = None):
        self.broken = broken
        self.insert_error = insert_error
        self.executed = []

    def execute(self, query, params=None):
        self.executed.append((str(query), params))
        if self.broken:
            raise psycopg.OperationalError("server closed the connection unexpectedly")
        if self.insert_error is not None and "INSERT" in str(query):
            raise self.insert_error
        if "server_version" in str(query):
            return FakeResult([{"server_version": "16.2"}])
        return FakeResult([{"?column?": 1}])

    @contextmanager
    def transaction(self):
        yield


class FakePool:
    """
    Stands in for psycopg_pool.ConnectionPool.

    The first `failures` getconn() calls time out; later calls succeed.
    """

    def __init__(self, failures: int = 0, broken_connections: int = 0, **kwargs):
        self.kwargs = kwargs
        self.failures_left = failures
        self.broken_left = broken_connections
        self.opened = False
        self.closed = False
        self.getconn_calls = 0
        self.lent = []
        self.returned = []

    def open(self, wait=False, timeout=None):
        self.opened = True

    def getconn(self, timeout=None):
        self.getconn_calls += 1
        if self.failures_left > 0:
            self.failures_left -= 1
            raise PoolTimeout(f"couldn't get a connection after {timeout} sec")
        broken = self.broken_left > 0
        if broken:
            self.broken_left -= 1
        conn = FakeConnection(broken=broken)
        self.lent.append(conn)
        return conn

    def putconn(self, conn):
        self.returned.append(conn)

    def close(self):
        self.closed = True

    @property
    def outstanding(self) -> int:
        return len(self.lent) - sum(1 for c in self.returned if c in self.lent)


class FakeBulkWriter(BulkWriter):
    """
    Records every column set it is given.

    Calls whose 1-based number is in fail_calls raise BatchWriteError as a
    store rejection would, duplicate key by default.
    """

    MESSAGES = {
        "23505": 'duplicate key value violates unique constraint "pk_dur_quarterly_load"',
        "57014": "canceling statement due to statement timeout",
    }

    def __init__(self, fail_calls=(), sqlstate="23505"):
        self.fail_calls = set(fail_calls)
        self.sqlstate = sqlstate
        self.calls = []
        self.timeouts = []

    def insert_columns(self, handle, table, columns, statement_timeout=None):
        self.calls.append(columns)
        self.timeouts.append(statement_timeout)
        if len(self.calls) in self.fail_calls:
            raise BatchWriteError(self.MESSAGES[self.sqlstate], sqlstate=self.sqlstate)
        return len(columns[0])

    @property
    def batch_sizes(self) -> list[int]:
        return [len(columns[0]) for columns in self.calls]


class FakeStore:
    """Target table checks without a database."""

    def __init__(self, missing=None, row_count=None):
        self.missing = list(missing or [])
        self.row_count = row_count
        self.counted_tags = []

    def missing_columns(self, handle):
        return list(self.missing)

    def count_rows(self, handle, batch_tag):
        self.counted_tags.append(batch_tag)
        return self.row_count if self.row_count is not None else 0


@pytest.fixture
def fake_manager_factory():
    """
    Build an opened ConnectionManager over a FakePool

    Returns a factory: factory(failures=0, **manager_kwargs) ->
    (manager, pool, sleeps)
    """
    def factory(failures: int = 0, broken_connections: int = 0, **kwargs):
        pools = []
        sleeps = []

        def pool_factory(**pool_kwargs):
            pool = FakePool(failures=failures, broken_connections=broken_connections, **pool_kwargs)
            pools.append(pool)
            return pool

        options = {
            "password": "secret",
            "max_retries": 3,
            "retry_delay": 0.5,
            "pool_factory": pool_factory,
            "sleep": sleeps.append,
        }
        options.update(kwargs)
        manager = ConnectionManager(**options)
        manager.open()
        return manager, pools[0], sleeps

    return factory


@pytest.fixture
def fake_bulk_writer():
    return FakeBulkWriter


@pytest.fixture
def fake_connection():
    return FakeConnection


@pytest.fixture
def fake_store():
    return FakeStore


@pytest.fixture
def dur_csv():
    """
    Build DUR CSV text from (member_id, quarter, year) tuples
    """
    def build(rows, header="Id,MemberId,NDC,Quantity,Quarter,Year"):
        lines = [header]
        for i, (member_id, quarter, year) in enumerate(rows, start=1):
            lines.append(f"{i},{member_id},00093015001,30,{quarter},{year}")
        return "\n".join(lines) + "\n"

    return build


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_loader",
        password="test_password",
        dbname="test_dur",
    ) as postgres:
        yield postgres


@pytest.fixture
def db_settings(postgres_container) -> LoaderSettings:
    """LoaderSettings pointing at the test container"""
    return LoaderSettings(
        database=DatabaseSettings(
            host=postgres_container.get_container_host_ip(),
            port=int(postgres_container.get_exposed_port(5432)),
            name="test_dur",
            user="test_loader",
            password="test_password",
            connect_timeout=5,
        ),
        bulk_load=BulkLoadSettings(retry_delay=0.1, max_connection_retries=1),
    )


@pytest.fixture
def connection_manager(db_settings) -> Generator[ConnectionManager, None, None]:
    """Opened ConnectionManager for the test container"""
    manager = ConnectionManager.from_settings(db_settings)
    manager.open()
    yield manager
    manager.close()


@pytest.fixture
def dur_table(connection_manager) -> TargetSchemaManager:
    """
    Provide an empty dur_quarterly_load table
    """
    store = TargetSchemaManager()
    with connection_manager.acquire() as handle:
        store.ensure_table(handle)
        store.truncate(handle)
    return store
