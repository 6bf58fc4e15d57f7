"""
Array-bound bulk inserts for PostgreSQL.

Each target column is bound as one array parameter and the arrays are
zipped back into rows server-side with unnest(), so a batch of any size
costs a single statement and a single round trip.
"""

from abc import ABC, abstractmethod
from typing import Any

import psycopg
from psycopg import sql

from durloader.core.errors import BatchWriteError
from durloader.core.models import TargetTable

from .connection import ConnectionHandle


class BulkWriter(ABC):
    """Store-specific statement that inserts a set of column arrays at once."""

    @abstractmethod
    def insert_columns(
        self,
        handle: ConnectionHandle,
        table: TargetTable,
        columns: list[list[Any]],
        statement_timeout: float | None = None,
    ) -> int:
        """
        Insert all rows described by the column arrays in one round trip.

        Args:
            handle: Connection to write through
            table: Target table descriptor
            columns: One array per table column, aligned by row
            statement_timeout: Seconds the statement may run

        Returns:
            Number of rows the store reports inserted

        Raises:
            BatchWriteError: If the store rejects the statement
        """


def build_insert_statement(table: TargetTable) -> sql.Composed:
    """
    INSERT INTO t (c1, c2, ...) SELECT * FROM unnest(%s::type1[], %s::type2[], ...)
    """
    return sql.SQL("INSERT INTO {table} ({columns}) SELECT * FROM unnest({arrays})").format(
        table=sql.Identifier(table.name),
        columns=sql.SQL(", ").join(sql.Identifier(c.name) for c in table.columns),
        arrays=sql.SQL(", ").join(
            sql.SQL("{}::{}[]").format(sql.Placeholder(), sql.SQL(c.sql_type)) for c in table.columns
        ),
    )


class PostgresArrayBulkWriter(BulkWriter):
    """
    Writes column arrays with INSERT ... SELECT * FROM unnest(...).

    The insert runs in its own transaction with a local statement_timeout,
    so a rejected or timed-out batch leaves nothing behind.
    """

    def __init__(self):
        self._statements: dict[tuple[str, int], sql.Composed] = {}

    def statement_for(self, table: TargetTable) -> sql.Composed:
        key = (table.name, table.version)
        if key not in self._statements:
            self._statements[key] = build_insert_statement(table)
        return self._statements[key]

    def insert_columns(
        self,
        handle: ConnectionHandle,
        table: TargetTable,
        columns: list[list[Any]],
        statement_timeout: float | None = None,
    ) -> int:
        if len(columns) != len(table.columns):
            raise ValueError(
                f"Expected {len(table.columns)} column arrays for {table.name}, got {len(columns)}"
            )
        lengths = {len(values) for values in columns}
        if len(lengths) > 1:
            raise ValueError(f"Column arrays differ in length: {sorted(lengths)}")

        conn = handle.connection
        try:
            with conn.transaction():
                if statement_timeout:
                    conn.execute(
                        "SELECT set_config('statement_timeout', %s, true)",
                        (f"{int(statement_timeout * 1000)}ms",),
                    )
                cur = conn.execute(self.statement_for(table), columns)
                return cur.rowcount
        except psycopg.Error as e:
            raise BatchWriteError(str(e).strip(), sqlstate=e.sqlstate) from e
