"""
Unit tests for the columnar bulk writer.

The pool and the store-specific bulk insert are replaced with in-memory
stand-ins from conftest.
"""

from datetime import date
from decimal import Decimal

import psycopg
import pytest

from durloader.batch.writers import ColumnarBulkWriter, transpose
from durloader.core.errors import BatchWriteError
from durloader.core.models import DUR_QUARTERLY_LOAD, Batch, DurRecord, Period, RecordStatus
from durloader.warehouse.bulk_insert import PostgresArrayBulkWriter, build_insert_statement
from durloader.warehouse.connection import ConnectionHandle


def make_batch(sequence: int = 1, count: int = 3, first_line: int = 1) -> Batch:
    records = [
        DurRecord(
            identifier=first_line + i,
            memberId=f"MBR{first_line + i:06d}",
            nationalDrugCode="00093015001",
            serviceDate=date(2024, 2, 14),
            paidAmount=Decimal("12.47"),
            period=Period(quarter="Q1", year=2024),
            batchTag="RUN1",
            status=RecordStatus.VALIDATED,
        )
        for i in range(count)
    ]
    return Batch(
        sequence=sequence,
        batch_tag="RUN1",
        records=records,
        first_line=first_line,
        last_line=first_line + count - 1,
    )


class TestTranspose:
    """Tests for row-to-column transposition"""

    def test_shape(self):
        """Test one array per column, one value per record"""
        columns = transpose(make_batch(count=3), DUR_QUARTERLY_LOAD)

        assert len(columns) == len(DUR_QUARTERLY_LOAD.columns)
        assert all(len(values) == 3 for values in columns)

    def test_values_in_column_order(self):
        """Test arrays follow table column order and record order"""
        columns = transpose(make_batch(count=2, first_line=10), DUR_QUARTERLY_LOAD)
        by_name = dict(zip(DUR_QUARTERLY_LOAD.column_names, columns))

        assert by_name["id"] == [10, 11]
        assert by_name["member_id"] == ["MBR000010", "MBR000011"]
        assert by_name["quarter"] == ["Q1", "Q1"]
        assert by_name["status"] == ["VALIDATED", "VALIDATED"]
        assert by_name["drug_name"] == [None, None]


class TestInsertStatement:
    """Tests for the generated SQL"""

    def test_statement_shape(self):
        """Test the statement binds one typed array per column"""
        statement = build_insert_statement(DUR_QUARTERLY_LOAD)
        text = repr(statement)

        assert "dur_quarterly_load" in text
        assert "unnest" in text
        assert text.count("::") == len(DUR_QUARTERLY_LOAD.columns)


class TestColumnarBulkWriter:
    """Tests for ColumnarBulkWriter"""

    def test_write_batch_success(self, fake_manager_factory, fake_bulk_writer):
        """Test a successful batch is reported and its records PROCESSED"""
        manager, pool, _ = fake_manager_factory()
        bulk = fake_bulk_writer()
        writer = ColumnarBulkWriter(manager, bulk)
        batch = make_batch(count=3)

        outcome = writer.write_batch(batch)

        assert outcome.succeeded
        assert outcome.rows_inserted == 3
        assert bulk.batch_sizes == [3]
        assert all(r.status == RecordStatus.PROCESSED for r in batch.records)
        assert pool.outstanding == 0

    def test_write_batch_failure(self, fake_manager_factory, fake_bulk_writer):
        """Test a rejected batch is reported, not raised"""
        manager, pool, _ = fake_manager_factory()
        writer = ColumnarBulkWriter(manager, fake_bulk_writer(fail_calls={1}))
        batch = make_batch(sequence=4, count=2, first_line=7)

        outcome = writer.write_batch(batch)

        assert not outcome.succeeded
        assert outcome.rows_inserted == 0
        assert outcome.sequence == 4
        assert (outcome.first_line, outcome.last_line) == (7, 8)
        assert outcome.sqlstate == "23505"
        assert "duplicate key" in outcome.error
        assert all(r.status == RecordStatus.ERROR for r in batch.records)
        assert pool.outstanding == 0

    def test_write_batch_connection_failure(self, fake_manager_factory, fake_bulk_writer):
        """Test a batch that cannot get a connection fails alone"""
        manager, _, _ = fake_manager_factory(failures=10, max_retries=1)
        bulk = fake_bulk_writer()

        outcome = ColumnarBulkWriter(manager, bulk).write_batch(make_batch())

        assert not outcome.succeeded
        assert "Failed to connect" in outcome.error
        assert bulk.calls == []

    def test_write_raises_with_batch_details(self, fake_manager_factory, fake_bulk_writer):
        """Test write() raises BatchWriteError carrying sequence and size"""
        manager, _, _ = fake_manager_factory()
        writer = ColumnarBulkWriter(manager, fake_bulk_writer(fail_calls={1}))

        with manager.acquire() as handle:
            with pytest.raises(BatchWriteError) as exc_info:
                writer.write(make_batch(sequence=2, count=5), handle)

        assert exc_info.value.batch_sequence == 2
        assert exc_info.value.batch_size == 5

    def test_failures_isolated(self, fake_manager_factory, fake_bulk_writer):
        """Test a failed batch does not affect the next one"""
        manager, _, _ = fake_manager_factory()
        writer = ColumnarBulkWriter(manager, fake_bulk_writer(fail_calls={2}))

        outcomes = [writer.write_batch(make_batch(sequence=i, first_line=i * 10)) for i in (1, 2, 3)]

        assert [o.succeeded for o in outcomes] == [True, False, True]
        assert sum(o.rows_inserted for o in outcomes) == 6


class TestStatementTimeout:
    """Tests for the per-batch statement timeout"""

    def test_command_timeout_forwarded(self, fake_manager_factory, fake_bulk_writer):
        """Test the writer passes its command timeout with every batch"""
        manager, _, _ = fake_manager_factory()
        bulk = fake_bulk_writer()
        writer = ColumnarBulkWriter(manager, bulk, command_timeout=1.5)

        writer.write_batch(make_batch(sequence=1))
        writer.write_batch(make_batch(sequence=2))

        assert bulk.timeouts == [1.5, 1.5]

    def test_timeout_set_inside_transaction(self, fake_connection):
        """Test the timeout is applied with set_config before the insert"""
        conn = fake_connection()
        columns = transpose(make_batch(count=2), DUR_QUARTERLY_LOAD)

        PostgresArrayBulkWriter().insert_columns(
            ConnectionHandle(conn, 1), DUR_QUARTERLY_LOAD, columns, statement_timeout=1.5
        )

        assert len(conn.executed) == 2
        assert conn.executed[0] == ("SELECT set_config('statement_timeout', %s, true)", ("1500ms",))
        assert "INSERT" in conn.executed[1][0]

    def test_no_timeout_skips_set_config(self, fake_connection):
        """Test no set_config is issued without a timeout"""
        conn = fake_connection()
        columns = transpose(make_batch(count=2), DUR_QUARTERLY_LOAD)

        PostgresArrayBulkWriter().insert_columns(ConnectionHandle(conn, 1), DUR_QUARTERLY_LOAD, columns)

        assert len(conn.executed) == 1

    def test_cancelled_statement_is_batch_error(self, fake_connection):
        """Test a cancelled insert surfaces as BatchWriteError with its SQLSTATE"""
        conn = fake_connection(
            insert_error=psycopg.errors.QueryCanceled("canceling statement due to statement timeout")
        )
        columns = transpose(make_batch(count=2), DUR_QUARTERLY_LOAD)

        with pytest.raises(BatchWriteError) as exc_info:
            PostgresArrayBulkWriter().insert_columns(
                ConnectionHandle(conn, 1), DUR_QUARTERLY_LOAD, columns, statement_timeout=0.05
            )

        assert exc_info.value.sqlstate == "57014"

    def test_timeout_fails_only_its_batch(self, fake_manager_factory, fake_bulk_writer):
        """Test a timed-out batch is a batch failure and the next batch still loads"""
        manager, pool, _ = fake_manager_factory()
        writer = ColumnarBulkWriter(manager, fake_bulk_writer(fail_calls={1}, sqlstate="57014"))

        timed_out = writer.write_batch(make_batch(sequence=1))
        loaded = writer.write_batch(make_batch(sequence=2, first_line=10))

        assert not timed_out.succeeded
        assert timed_out.sqlstate == "57014"
        assert "statement timeout" in timed_out.error
        assert loaded.succeeded
        assert pool.outstanding == 0
