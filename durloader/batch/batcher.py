"""
Batcher: groups validated rows into bounded batches in source order.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime, timezone

from durloader.core.models import Batch, RowResult
from durloader.core.models.dur_record import utc_now
from durloader.observability.logger import get_logger

DEFAULT_BATCH_SIZE = 1000
MAX_TAG_LENGTH = 50


def default_batch_tag(now: datetime | None = None) -> str:
    """Run tag used when neither the caller nor the source supplies one; stamped in UTC."""
    now = now or utc_now()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"CSV_{now:%Y%m%d_%H%M%S}"


class Batcher:
    """
    Splits a lazy stream of accepted rows into Batches of at most
    batch_size records.

    Only the batch being filled is held in memory. Every batch of a run
    shares one tag: the one given here, else the first record's own tag,
    else a timestamp tag. Records without a tag are stamped with it.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_tag: str | None = None,
        clock: Callable[[], datetime] = utc_now,
        logger: logging.Logger | None = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if batch_tag is not None and not 1 <= len(batch_tag) <= MAX_TAG_LENGTH:
            raise ValueError(f"batch_tag must be 1-{MAX_TAG_LENGTH} characters, got {batch_tag!r}")

        self.batch_size = batch_size
        self.clock = clock
        self.logger = logger or get_logger("durloader.batcher")
        self._batch_tag = batch_tag
        self.batches_emitted = 0

    @property
    def batch_tag(self) -> str:
        """The run tag; resolved on first use if no record has fixed it yet."""
        if self._batch_tag is None:
            self._batch_tag = default_batch_tag(self.clock())
            self.logger.info(f"Using generated batch tag {self._batch_tag}")
        return self._batch_tag

    def _stamp(self, row: RowResult) -> None:
        record = row.unwrap()
        if self._batch_tag is None and record.batch_tag:
            self._batch_tag = record.batch_tag
            self.logger.info(f"Using batch tag {self._batch_tag} from the source")
        if not record.batch_tag:
            record.batch_tag = self.batch_tag

    def _emit(self, rows: list[RowResult]) -> Batch:
        self.batches_emitted += 1
        return Batch(
            sequence=self.batches_emitted,
            batch_tag=self.batch_tag,
            records=[row.record for row in rows],
            first_line=rows[0].line_number,
            last_line=rows[-1].line_number,
        )

    def batches(self, rows: Iterable[RowResult]) -> Iterator[Batch]:
        """
        Yield batches lazily.

        Args:
            rows: Accepted rows in source order

        Raises:
            RowValidationError: If a rejected row is passed in
        """
        pending: list[RowResult] = []
        for row in rows:
            self._stamp(row)
            pending.append(row)
            if len(pending) == self.batch_size:
                yield self._emit(pending)
                pending = []

        if pending:
            yield self._emit(pending)
