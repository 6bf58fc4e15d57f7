"""
IngestionReport: counters and error descriptors for one load run.

The report is the only object mutated across pipeline stages. Every
mutation goes through a method that takes the report lock, so batch
writers running on worker threads never lose an update.
"""

import threading
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .dur_record import utc_now


class RunState(str, Enum):
    """LoadCoordinator states."""

    INIT = "INIT"
    SCHEMA_VALIDATING = "SCHEMA_VALIDATING"
    STREAMING = "STREAMING"
    COMPLETE = "COMPLETE"
    ABORTED = "ABORTED"
    CANCELLED = "CANCELLED"


TERMINAL_STATES = frozenset({RunState.COMPLETE, RunState.ABORTED, RunState.CANCELLED})


class LineError(BaseModel):
    """A rejected source row."""

    line_number: int
    source_line: int | None = None
    raw_text: str
    reasons: list[str] = Field(..., min_length=1)


class BatchFailure(BaseModel):
    """A batch the store rejected as a whole."""

    sequence: int
    size: int
    first_line: int | None = None
    last_line: int | None = None
    error: str
    sqlstate: str | None = None


class ReportFinalizedError(RuntimeError):
    """Raised when a finalized report is mutated."""


class IngestionReport:
    """
    Outcome of one load run.

    Counters:
        total_read: Data rows read from the source
        validated: Rows that produced a record
        rejected: Rows rejected by validation
        batches_attempted: Batches handed to the writer
        batches_failed: Batches rejected by the store
        rows_inserted: Rows the store reported inserted
    """

    def __init__(self, source: str | None = None):
        self._lock = threading.Lock()
        self._finalized = False

        self.source = source
        self._batch_tag: str | None = None
        self._state = RunState.INIT
        self._abort_reason: str | None = None
        self._started_at: datetime = utc_now()
        self._finished_at: datetime | None = None

        self._total_read = 0
        self._validated = 0
        self._rejected = 0
        self._batches_attempted = 0
        self._batches_failed = 0
        self._rows_inserted = 0

        self._verified_count: int | None = None
        self._errors: list[LineError] = []
        self._batch_failures: list[BatchFailure] = []
        self._warnings: list[str] = []

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._finalized:
            raise ReportFinalizedError("IngestionReport is finalized and read-only")

    def set_state(self, state: RunState) -> None:
        with self._lock:
            self._check_open()
            self._state = state

    def set_batch_tag(self, batch_tag: str) -> None:
        with self._lock:
            self._check_open()
            self._batch_tag = batch_tag

    def record_read(self, count: int = 1) -> None:
        with self._lock:
            self._check_open()
            self._total_read += count

    def record_validated(self, count: int = 1) -> None:
        with self._lock:
            self._check_open()
            self._validated += count

    def record_rejection(
        self,
        line_number: int,
        raw_text: str,
        reasons: list[str],
        source_line: int | None = None,
    ) -> None:
        error = LineError(
            line_number=line_number,
            source_line=source_line,
            raw_text=raw_text,
            reasons=reasons,
        )
        with self._lock:
            self._check_open()
            self._rejected += 1
            self._errors.append(error)

    def record_batch_attempt(self) -> None:
        with self._lock:
            self._check_open()
            self._batches_attempted += 1

    def record_batch_success(self, rows_inserted: int) -> None:
        with self._lock:
            self._check_open()
            self._rows_inserted += rows_inserted

    def record_batch_failure(self, failure: BatchFailure) -> None:
        with self._lock:
            self._check_open()
            self._batches_failed += 1
            self._batch_failures.append(failure)

    def add_warning(self, message: str) -> None:
        with self._lock:
            self._check_open()
            self._warnings.append(message)

    def set_verified_count(self, count: int) -> None:
        with self._lock:
            self._check_open()
            self._verified_count = count

    def abort(self, reason: str) -> None:
        with self._lock:
            self._check_open()
            self._state = RunState.ABORTED
            self._abort_reason = reason

    def finalize(self, state: RunState | None = None) -> "IngestionReport":
        """
        Close the report. Any later mutation raises ReportFinalizedError.

        Args:
            state: Terminal state to record (keeps the current state if None)

        Returns:
            The report itself
        """
        with self._lock:
            self._check_open()
            if state is not None:
                self._state = state
            if self._state not in TERMINAL_STATES:
                raise ValueError(f"Cannot finalize report in non-terminal state {self._state.value}")
            self._finished_at = utc_now()
            self._finalized = True
        return self

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def batch_tag(self) -> str | None:
        return self._batch_tag

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def abort_reason(self) -> str | None:
        return self._abort_reason

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def finished_at(self) -> datetime | None:
        return self._finished_at

    @property
    def total_read(self) -> int:
        return self._total_read

    @property
    def validated(self) -> int:
        return self._validated

    @property
    def rejected(self) -> int:
        return self._rejected

    @property
    def batches_attempted(self) -> int:
        return self._batches_attempted

    @property
    def batches_failed(self) -> int:
        return self._batches_failed

    @property
    def rows_inserted(self) -> int:
        return self._rows_inserted

    @property
    def verified_count(self) -> int | None:
        return self._verified_count

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def errors(self) -> list[LineError]:
        with self._lock:
            return list(self._errors)

    @property
    def batch_failures(self) -> list[BatchFailure]:
        with self._lock:
            return list(self._batch_failures)

    @property
    def warnings(self) -> list[str]:
        with self._lock:
            return list(self._warnings)

    @property
    def aborted(self) -> bool:
        return self.state == RunState.ABORTED

    @property
    def completed(self) -> bool:
        return self.state == RunState.COMPLETE

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> str:
        """One-line human summary distinguishing aborted from completed runs."""
        if self.state == RunState.ABORTED:
            return f"aborted before completion: {self.abort_reason}"
        prefix = "cancelled" if self.state == RunState.CANCELLED else "completed"
        return (
            f"{prefix} with {self.rejected} row rejections / "
            f"{self.batches_failed} batch failures "
            f"({self.rows_inserted} of {self.total_read} rows inserted)"
        )

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "source": self.source,
                "batch_tag": self.batch_tag,
                "state": self.state.value,
                "abort_reason": self.abort_reason,
                "started_at": self.started_at.isoformat(),
                "finished_at": self.finished_at.isoformat() if self.finished_at else None,
                "total_read": self.total_read,
                "validated": self.validated,
                "rejected": self.rejected,
                "batches_attempted": self.batches_attempted,
                "batches_failed": self.batches_failed,
                "rows_inserted": self.rows_inserted,
                "verified_count": self.verified_count,
                "errors": [e.model_dump() for e in self._errors],
                "batch_failures": [f.model_dump() for f in self._batch_failures],
                "warnings": list(self._warnings),
            }

    def __repr__(self) -> str:
        return (
            f"IngestionReport(state={self.state.value}, read={self.total_read}, "
            f"validated={self.validated}, rejected={self.rejected}, "
            f"batches={self.batches_attempted}, failed={self.batches_failed}, "
            f"inserted={self.rows_inserted})"
        )
