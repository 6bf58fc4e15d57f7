"""
Unit tests for IngestionReport.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from durloader.core.models import BatchFailure, IngestionReport, ReportFinalizedError, RunState


class TestIngestionReport:
    """Tests for report counters and lifecycle"""

    def test_initial_state(self):
        """Test a new report starts in INIT with zero counters"""
        report = IngestionReport(source="dur.csv")

        assert report.state == RunState.INIT
        assert report.total_read == 0
        assert report.errors == []
        assert report.duration_seconds is None

    def test_rejection_recorded(self):
        """Test a rejection adds an error descriptor"""
        report = IngestionReport()
        report.record_rejection(2, "2,M,Q5,2024", ["invalid quarter"], source_line=3)

        assert report.rejected == 1
        error = report.errors[0]
        assert error.line_number == 2
        assert error.source_line == 3
        assert error.raw_text == "2,M,Q5,2024"
        assert error.reasons == ["invalid quarter"]

    def test_errors_are_copies(self):
        """Test callers cannot mutate the report through its lists"""
        report = IngestionReport()
        report.record_rejection(1, "x", ["memberId required"])

        report.errors.clear()

        assert len(report.errors) == 1

    def test_batch_counters(self):
        """Test batch attempt, success and failure counters"""
        report = IngestionReport()
        report.record_batch_attempt()
        report.record_batch_success(1000)
        report.record_batch_attempt()
        report.record_batch_failure(BatchFailure(sequence=2, size=500, error="boom"))

        assert report.batches_attempted == 2
        assert report.batches_failed == 1
        assert report.rows_inserted == 1000
        assert report.batch_failures[0].size == 500

    def test_finalize_freezes(self):
        """Test a finalized report rejects mutation"""
        report = IngestionReport()
        report.finalize(RunState.COMPLETE)

        assert report.finalized
        assert report.duration_seconds is not None
        with pytest.raises(ReportFinalizedError):
            report.record_read()
        with pytest.raises(ReportFinalizedError):
            report.finalize(RunState.COMPLETE)

    @pytest.mark.parametrize(
        "attribute,value",
        [
            ("total_read", 99),
            ("rows_inserted", 99),
            ("batches_failed", 0),
            ("state", RunState.ABORTED),
            ("verified_count", 1),
        ],
    )
    def test_fields_not_assignable(self, attribute, value):
        """Test counters and state change only through the report's methods"""
        report = IngestionReport()
        report.record_read(3)
        report.finalize(RunState.COMPLETE)

        with pytest.raises(AttributeError):
            setattr(report, attribute, value)
        assert report.total_read == 3
        assert report.state == RunState.COMPLETE

    def test_finalize_requires_terminal_state(self):
        """Test finalizing in a non-terminal state is refused"""
        report = IngestionReport()
        report.set_state(RunState.STREAMING)

        with pytest.raises(ValueError):
            report.finalize()

    def test_abort(self):
        """Test abort records the reason and the summary says so"""
        report = IngestionReport()
        report.abort("connection failed: timeout")
        report.finalize()

        assert report.aborted
        assert not report.completed
        assert report.summary() == "aborted before completion: connection failed: timeout"

    def test_completed_summary(self):
        """Test the completed summary lists rejections and failures"""
        report = IngestionReport()
        report.record_read(3)
        report.record_rejection(2, "x", ["invalid quarter"])
        report.record_batch_success(2)
        report.finalize(RunState.COMPLETE)

        assert report.summary() == "completed with 1 row rejections / 0 batch failures (2 of 3 rows inserted)"

    def test_to_dict(self):
        """Test the dictionary form carries counters and descriptors"""
        report = IngestionReport(source="dur.csv")
        report.set_batch_tag("RUN1")
        report.record_rejection(4, "raw", ["year required"])
        report.add_warning("something odd")
        report.finalize(RunState.COMPLETE)

        data = report.to_dict()

        assert data["source"] == "dur.csv"
        assert data["batch_tag"] == "RUN1"
        assert data["state"] == "COMPLETE"
        assert data["errors"][0]["reasons"] == ["year required"]
        assert data["warnings"] == ["something odd"]
        assert data["finished_at"] is not None

    def test_concurrent_updates(self):
        """Test counters are not lost under concurrent writers"""
        report = IngestionReport()

        def work(i):
            for _ in range(500):
                report.record_batch_attempt()
                report.record_batch_success(2)
            report.record_batch_failure(BatchFailure(sequence=i, size=1, error="x"))

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(work, range(8)))

        assert report.batches_attempted == 4000
        assert report.rows_inserted == 8000
        assert report.batches_failed == 8
