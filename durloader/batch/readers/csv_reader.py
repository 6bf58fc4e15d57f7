"""
Streaming reader for delimited text sources.

Rows are yielded one at a time together with their data-row number, the
physical line they start on and their raw text, so rejected rows can be
reported exactly as they appeared in the file.
"""

import csv
import io
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TextIO

from pydantic import BaseModel, Field

from durloader.observability.logger import get_logger


class SourceRow(BaseModel):
    """
    One record read from a delimited source.

    Attributes:
        line_number: Data-row number (1 = first row after the header)
        source_line: Physical line the row starts on (1-based)
        fields: Cells as split by the delimiter
        raw_text: Row text without its line terminator
        error: Parser error when the row could not be split
    """

    line_number: int = Field(..., ge=1)
    source_line: int = Field(..., ge=1)
    fields: list[str]
    raw_text: str
    error: str | None = None


class CsvFileInfo(BaseModel):
    """Summary of a source file, gathered without loading it."""

    path: str
    size_bytes: int
    headers: list[str]
    line_count: int
    estimated_records: int


class _LineTracker:
    """Feeds csv.reader and remembers the physical lines behind each row."""

    def __init__(self, stream: TextIO):
        self._stream = stream
        self.pending: list[str] = []
        self.lines_read = 0

    def __iter__(self):
        return self

    def __next__(self) -> str:
        line = next(self._stream)
        self.lines_read += 1
        self.pending.append(line)
        return line

    def take(self) -> tuple[int, str]:
        """Return (first physical line, raw text) of the row just parsed."""
        start = self.lines_read - len(self.pending) + 1
        text = "".join(self.pending).rstrip("\r\n")
        self.pending.clear()
        return start, text


def _is_blank(fields: list[str]) -> bool:
    return not fields or (len(fields) == 1 and not fields[0].strip())


class DelimitedSource:
    """
    Lazy, single-pass view over an open delimited text stream.

    The header (when present) is read on construction; iteration yields
    SourceRow objects and never holds more than one row.
    """

    def __init__(
        self,
        stream: TextIO,
        delimiter: str = ",",
        has_header: bool = True,
        ignore_blank_lines: bool = True,
        name: str = "<stream>",
    ):
        if len(delimiter) != 1:
            raise ValueError(f"Delimiter must be a single character, got {delimiter!r}")

        self.name = name
        self.has_header = has_header
        self.ignore_blank_lines = ignore_blank_lines
        self._lines = _LineTracker(stream)
        self._reader = csv.reader(self._lines, delimiter=delimiter)
        self._rows_yielded = 0
        self._peeked: SourceRow | None = None
        self._consumed = False

        self.header: list[str] | None = None
        if has_header:
            first = self._next_row()
            self.header = first.fields if first is not None else None
            self._rows_yielded = 0

    @classmethod
    def from_text(cls, text: str, **kwargs) -> "DelimitedSource":
        """Build a source over an in-memory string."""
        kwargs.setdefault("name", "<text>")
        return cls(io.StringIO(text, newline=""), **kwargs)

    def _next_row(self) -> SourceRow | None:
        while True:
            error = None
            try:
                fields = next(self._reader)
            except StopIteration:
                return None
            except csv.Error as e:
                fields, error = [], str(e)

            source_line, raw_text = self._lines.take()
            if error is None and self.ignore_blank_lines and _is_blank(fields):
                continue

            self._rows_yielded += 1
            return SourceRow(
                line_number=self._rows_yielded,
                source_line=source_line,
                fields=fields,
                raw_text=raw_text,
                error=error,
            )

    def peek(self) -> SourceRow | None:
        """Return the next row without consuming it."""
        if self._peeked is None:
            self._peeked = self._next_row()
        return self._peeked

    def __iter__(self) -> Iterator[SourceRow]:
        if self._consumed:
            raise RuntimeError(f"Source {self.name} has already been read")
        self._consumed = True

        while True:
            if self._peeked is not None:
                row, self._peeked = self._peeked, None
            else:
                row = self._next_row()
            if row is None:
                return
            yield row

    @property
    def lines_read(self) -> int:
        return self._lines.lines_read


class CSVReader:
    """
    Opens delimited files as DelimitedSource streams.
    """

    def __init__(
        self,
        delimiter: str = ",",
        has_header: bool = True,
        encoding: str = "utf-8",
        ignore_blank_lines: bool = True,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize CSV reader.

        Args:
            delimiter: Field delimiter
            has_header: Whether the first row is a header
            encoding: Text encoding; undecodable bytes are replaced
            ignore_blank_lines: Skip lines holding no data
            logger: Logger for source diagnostics
        """
        self.delimiter = delimiter
        self.has_header = has_header
        self.encoding = encoding
        self.ignore_blank_lines = ignore_blank_lines
        self.logger = logger or get_logger("durloader.reader")

    @contextmanager
    def open(self, file_path: str | Path) -> Iterator[DelimitedSource]:
        """
        Open a file for streaming; the file is closed when the block exits.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        path = Path(file_path)
        self.logger.info(
            f"Opening source {path}",
            extra={"source": str(path), "delimiter": self.delimiter, "has_header": self.has_header},
        )
        with open(path, encoding=self.encoding, errors="replace", newline="") as stream:
            yield DelimitedSource(
                stream,
                delimiter=self.delimiter,
                has_header=self.has_header,
                ignore_blank_lines=self.ignore_blank_lines,
                name=str(path),
            )

    def inspect_file(self, file_path: str | Path) -> CsvFileInfo:
        """
        Gather size, header and line counts for a file.

        Args:
            file_path: Path to the delimited file

        Returns:
            CsvFileInfo for the file
        """
        path = Path(file_path)
        with self.open(path) as source:
            headers = [h.replace("\ufeff", "").strip() for h in source.header or []]
            records = sum(1 for _ in source)
            line_count = source.lines_read

        return CsvFileInfo(
            path=str(path),
            size_bytes=path.stat().st_size,
            headers=headers,
            line_count=line_count,
            estimated_records=records,
        )
