"""
Load run orchestration.

Coordinates the flow: connect → map header → validate rows → batch → bulk
insert → verify, recording everything on one IngestionReport.
"""

import logging
import threading
from collections.abc import Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path

import psycopg

from durloader.batch.batcher import Batcher
from durloader.batch.readers import CSVReader, DelimitedSource
from durloader.batch.writers import ColumnarBulkWriter
from durloader.config.settings import BulkLoadSettings, CsvSettings, LoaderSettings
from durloader.core.errors import StoreConnectionError, StructuralError, VerificationMismatch
from durloader.core.models import (
    DUR_QUARTERLY_LOAD,
    Batch,
    BatchFailure,
    IngestionReport,
    RowResult,
    RunState,
)
from durloader.core.rules import RecordValidator
from durloader.core.schema import SchemaMapper
from durloader.observability import metrics
from durloader.observability.logger import get_logger, log_operation
from durloader.warehouse.bulk_insert import PostgresArrayBulkWriter
from durloader.warehouse.connection import ConnectionHandle, ConnectionManager
from durloader.warehouse.schema_mgmt import TargetSchemaManager


class LoadCoordinator:
    """
    Runs one source through the pipeline and produces an IngestionReport.

    States:
    1. INIT: acquire and probe a first connection
    2. SCHEMA_VALIDATING: map the header, optionally check the target table
    3. STREAMING: validate, batch and write until the source is exhausted
    4. COMPLETE, or ABORTED (connection/structure failure before streaming),
       or CANCELLED (cancel() observed between batch writes)

    Row rejections and batch failures are recorded and never end the run.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        writer: ColumnarBulkWriter | None = None,
        store: TargetSchemaManager | None = None,
        csv_settings: CsvSettings | None = None,
        bulk_settings: BulkLoadSettings | None = None,
        reader: CSVReader | None = None,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the coordinator.

        Args:
            connection_manager: Source of connection handles
            writer: Batch writer (defaults to the PostgreSQL array writer)
            store: Target table checks (defaults to TargetSchemaManager)
            csv_settings: How sources are read
            bulk_settings: Batching, retry and verification settings
            reader: File reader (built from csv_settings by default)
            logger: Logger for run diagnostics
        """
        self.connection_manager = connection_manager
        self.csv_settings = csv_settings or CsvSettings()
        self.bulk_settings = bulk_settings or BulkLoadSettings()
        self.logger = logger or get_logger("durloader.pipeline")

        self.writer = writer or ColumnarBulkWriter(
            connection_manager,
            PostgresArrayBulkWriter(),
            table=DUR_QUARTERLY_LOAD,
            command_timeout=self.bulk_settings.command_timeout,
        )
        self.table = self.writer.table
        self.store = store or TargetSchemaManager(self.table)
        self.reader = reader or CSVReader(
            delimiter=self.csv_settings.delimiter,
            has_header=self.csv_settings.has_header,
            encoding=self.csv_settings.encoding,
            ignore_blank_lines=self.csv_settings.ignore_blank_lines,
        )
        self._cancelled = threading.Event()

    @classmethod
    def from_settings(
        cls,
        settings: LoaderSettings,
        connection_manager: ConnectionManager | None = None,
        logger: logging.Logger | None = None,
    ) -> "LoadCoordinator":
        """Build a coordinator (and, if needed, its ConnectionManager) from settings."""
        manager = connection_manager or ConnectionManager.from_settings(settings)
        return cls(
            manager,
            csv_settings=settings.csv,
            bulk_settings=settings.bulk_load,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop the run at the next batch boundary."""
        self._cancelled.set()
        self.logger.warning("Cancellation requested; stopping after the current batch")

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self, file_path: str | Path, batch_tag: str | None = None) -> IngestionReport:
        """
        Load a delimited file.

        Args:
            file_path: Source file
            batch_tag: Tag for every row of the run (optional)

        Returns:
            The finalized IngestionReport
        """
        path = Path(file_path)
        if not path.is_file():
            report = IngestionReport(source=str(path))
            return self._finish_aborted(report, f"source file not found: {path}")

        with self.reader.open(path) as source:
            return self.run_source(source, batch_tag=batch_tag)

    def run_source(self, source: DelimitedSource, batch_tag: str | None = None) -> IngestionReport:
        """
        Load an already opened source.

        Returns:
            The finalized IngestionReport
        """
        report = IngestionReport(source=source.name)

        with log_operation("Load run", logger=self.logger, source=source.name, table=self.table.name):
            mapper = self._prepare(source, report)
            if mapper is None:
                return self._finish_aborted(report, report.abort_reason)

            report.set_state(RunState.STREAMING)
            batcher = Batcher(self.bulk_settings.batch_size, batch_tag=batch_tag, logger=self.logger)
            validator = RecordValidator(
                mapper, validate_data=self.bulk_settings.validate_data, logger=self.logger
            )
            batches = batcher.batches(self._accepted_rows(source, validator, report))

            if self.bulk_settings.max_workers > 1:
                self._write_concurrently(batches, report)
            else:
                self._write_sequentially(batches, report)

            report.set_batch_tag(batcher.batch_tag)
            final_state = RunState.CANCELLED if self.cancelled else RunState.COMPLETE

            if final_state == RunState.COMPLETE and self.bulk_settings.verify_after_load:
                self._verify(report)

        report.finalize(final_state)
        metrics.runs_total.labels(state=final_state.value).inc()
        self.logger.info(
            f"Load run {report.summary()}",
            extra={"batch_tag": report.batch_tag, "state": final_state.value},
        )
        return report

    # ------------------------------------------------------------------
    # Init / SchemaValidating
    # ------------------------------------------------------------------

    def _prepare(self, source: DelimitedSource, report: IngestionReport) -> SchemaMapper | None:
        """Run INIT and SCHEMA_VALIDATING; returns None after recording an abort."""
        self.connection_manager.open()
        try:
            with self.connection_manager.acquire(probe=True) as handle:
                report.set_state(RunState.SCHEMA_VALIDATING)
                mapper = self._build_mapper(source)
                if self.bulk_settings.verify_schema:
                    self._verify_target(handle)
                return mapper
        except StoreConnectionError as e:
            report.abort(f"connection failed: {e}")
        except StructuralError as e:
            report.abort(f"structural mismatch: {e}")
        except psycopg.Error as e:
            report.abort(f"target verification failed: {e}")
        return None

    def _build_mapper(self, source: DelimitedSource) -> SchemaMapper:
        if source.has_header:
            return SchemaMapper(
                source.header, strict=self.csv_settings.strict_headers, logger=self.logger
            )

        first = source.peek()
        if first is None:
            raise StructuralError(f"Source {source.name} is empty")
        return SchemaMapper.positional(len(first.fields), logger=self.logger)

    def _verify_target(self, handle: ConnectionHandle) -> None:
        missing = self.store.missing_columns(handle)
        if missing:
            raise StructuralError(
                f"Target table {self.table.name} is missing column(s): {', '.join(missing)}"
            )

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def _accepted_rows(
        self, source: DelimitedSource, validator: RecordValidator, report: IngestionReport
    ) -> Iterator[RowResult]:
        table = self.table.name
        for row in source:
            report.record_read()
            metrics.rows_read_total.labels(table=table).inc()

            if row.error is not None:
                result = RowResult.rejected(
                    row.line_number, [f"unreadable row: {row.error}"], row.raw_text, row.source_line
                )
            else:
                result = validator.validate(row.line_number, row.fields, row.raw_text, row.source_line)

            if result.passed:
                report.record_validated()
                metrics.rows_validated_total.labels(table=table).inc()
                yield result
            else:
                report.record_rejection(
                    result.line_number, result.raw_text, result.reasons, result.source_line
                )
                metrics.rows_rejected_total.labels(table=table).inc()

    def _write(self, batch: Batch, report: IngestionReport) -> None:
        report.record_batch_attempt()
        outcome = self.writer.write_batch(batch)
        if outcome.succeeded:
            report.record_batch_success(outcome.rows_inserted)
            return

        report.record_batch_failure(
            BatchFailure(
                sequence=outcome.sequence,
                size=outcome.size,
                first_line=outcome.first_line,
                last_line=outcome.last_line,
                error=outcome.error or "unknown error",
                sqlstate=outcome.sqlstate,
            )
        )

    def _write_sequentially(self, batches: Iterator[Batch], report: IngestionReport) -> None:
        for batch in batches:
            if self.cancelled:
                self.logger.warning(f"Run cancelled before batch {batch.sequence}")
                break
            self._write(batch, report)

    def _write_concurrently(self, batches: Iterator[Batch], report: IngestionReport) -> None:
        """
        Write with a bounded worker pool; at most max_workers batches
        exist at any time.
        """
        max_workers = self.bulk_settings.max_workers
        in_flight: set[Future] = set()

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="durloader-writer") as executor:
            for batch in batches:
                if self.cancelled:
                    self.logger.warning(f"Run cancelled before batch {batch.sequence}")
                    break
                in_flight.add(executor.submit(self._write, batch, report))
                if len(in_flight) >= max_workers:
                    done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        future.result()

            for future in in_flight:
                future.result()

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _verify(self, report: IngestionReport) -> None:
        """Compare the stored row count for the batch tag with rows_inserted."""
        try:
            with self.connection_manager.acquire() as handle:
                actual = self.store.count_rows(handle, report.batch_tag)
        except (StoreConnectionError, psycopg.Error) as e:
            message = f"verification skipped: {e}"
            self.logger.warning(message)
            report.add_warning(message)
            return

        report.set_verified_count(actual)
        if actual != report.rows_inserted:
            mismatch = VerificationMismatch(report.batch_tag, report.rows_inserted, actual)
            self.logger.warning(str(mismatch), extra={"batch_tag": report.batch_tag})
            report.add_warning(str(mismatch))

    def _finish_aborted(self, report: IngestionReport, reason: str | None) -> IngestionReport:
        if not report.aborted:
            report.abort(reason or "aborted")
        report.finalize()
        metrics.runs_total.labels(state=RunState.ABORTED.value).inc()
        self.logger.error(f"Load run {report.summary()}", extra={"abort_reason": report.abort_reason})
        return report
