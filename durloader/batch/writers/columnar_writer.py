"""
Columnar bulk writer for validated batches.

A batch is transposed into one array per target column and handed to a
BulkWriter, which inserts the whole batch with a single statement. The
store takes the batch or rejects it; a rejected batch is reported, never
split and retried.
"""

import logging
import time
from typing import Any

from pydantic import BaseModel

from durloader.core.errors import BatchWriteError, StoreConnectionError
from durloader.core.models import DUR_QUARTERLY_LOAD, Batch, TargetTable
from durloader.observability import metrics
from durloader.observability.logger import get_logger
from durloader.warehouse.bulk_insert import BulkWriter
from durloader.warehouse.connection import ConnectionHandle, ConnectionManager


def transpose(batch: Batch, table: TargetTable) -> list[list[Any]]:
    """
    Turn a row-major batch into column-major arrays.

    Returns one list per target column, in table order, each holding one
    value per record in batch order. Absent values stay None.
    """
    return [[column.value_of(record) for record in batch.records] for column in table.columns]


class BatchWriteOutcome(BaseModel):
    """Result of writing one batch."""

    sequence: int
    size: int
    succeeded: bool
    rows_inserted: int = 0
    first_line: int
    last_line: int
    duration_seconds: float = 0.0
    error: str | None = None
    sqlstate: str | None = None


class ColumnarBulkWriter:
    """
    Writes batches to the target table, one bulk statement per batch.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        bulk_writer: BulkWriter,
        table: TargetTable = DUR_QUARTERLY_LOAD,
        command_timeout: float | None = 300.0,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the writer.

        Args:
            connection_manager: Source of connection handles
            bulk_writer: Store-specific bulk insert
            table: Target table descriptor
            command_timeout: Statement timeout per batch, in seconds
            logger: Logger for batch diagnostics
        """
        self.connection_manager = connection_manager
        self.bulk_writer = bulk_writer
        self.table = table
        self.command_timeout = command_timeout
        self.logger = logger or get_logger("durloader.writer")

    def write(self, batch: Batch, handle: ConnectionHandle) -> int:
        """
        Insert a batch using a handle the caller already holds.

        Raises:
            BatchWriteError: If the store rejects the batch
        """
        columns = transpose(batch, self.table)
        try:
            with metrics.track_duration(metrics.batch_write_duration_seconds, table=self.table.name):
                return self.bulk_writer.insert_columns(
                    handle, self.table, columns, statement_timeout=self.command_timeout
                )
        except BatchWriteError as e:
            e.batch_sequence = batch.sequence
            e.batch_size = batch.size
            raise

    def write_batch(self, batch: Batch) -> BatchWriteOutcome:
        """
        Acquire a connection, write the batch and report what happened.

        Failures are returned in the outcome rather than raised, and the
        batch's records are marked PROCESSED or ERROR accordingly.
        """
        started = time.perf_counter()
        error: BatchWriteError | StoreConnectionError | None = None
        inserted = 0

        metrics.batches_in_flight.labels(table=self.table.name).inc()
        try:
            with self.connection_manager.acquire() as handle:
                inserted = self.write(batch, handle)
        except (BatchWriteError, StoreConnectionError) as e:
            error = e
        finally:
            metrics.batches_in_flight.labels(table=self.table.name).dec()

        duration = time.perf_counter() - started
        metrics.record_batch_outcome(self.table.name, batch.size, succeeded=error is None)

        if error is not None:
            message = str(error)
            batch.mark_failed(message)
            self.logger.error(
                f"Batch {batch.sequence} ({batch.size} rows, lines {batch.first_line}-{batch.last_line}) "
                f"failed: {message}",
                extra={
                    "batch_sequence": batch.sequence,
                    "batch_size": batch.size,
                    "sqlstate": getattr(error, "sqlstate", None),
                },
            )
            return BatchWriteOutcome(
                sequence=batch.sequence,
                size=batch.size,
                succeeded=False,
                first_line=batch.first_line,
                last_line=batch.last_line,
                duration_seconds=duration,
                error=message,
                sqlstate=getattr(error, "sqlstate", None),
            )

        batch.mark_processed()
        self.logger.info(
            f"Batch {batch.sequence} wrote {inserted} rows in {duration:.3f}s",
            extra={"batch_sequence": batch.sequence, "batch_size": batch.size, "rows_inserted": inserted},
        )
        return BatchWriteOutcome(
            sequence=batch.sequence,
            size=batch.size,
            succeeded=True,
            rows_inserted=inserted,
            first_line=batch.first_line,
            last_line=batch.last_line,
            duration_seconds=duration,
        )

