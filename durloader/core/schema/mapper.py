"""
SchemaMapper: resolve a source header row to canonical field positions.
"""

import logging
from collections.abc import Sequence

from durloader.core.errors import StructuralError
from durloader.observability.logger import get_logger

from .aliases import (
    DEFAULT_ALIASES,
    REQUIRED_FIELDS,
    CanonicalField,
    build_lookup,
    normalize_header,
)


class SchemaMapper:
    """
    Maps canonical fields to input column indexes.

    The header is resolved exactly once, at construction. Fields absent
    from the header stay unmapped; RecordValidator decides whether that
    matters for a given row.
    """

    def __init__(
        self,
        header: Sequence[str] | None,
        aliases: dict[CanonicalField, tuple[str, ...]] | None = None,
        strict: bool = False,
        logger: logging.Logger | None = None,
    ):
        """
        Initialize the mapper from a header row.

        Args:
            header: Header cells in source order
            aliases: Alias table (defaults to DEFAULT_ALIASES)
            strict: Treat missing required fields as a structural error
            logger: Logger for mapping diagnostics

        Raises:
            StructuralError: If the header is empty, has no columns, maps
                no column at all, or (strict) lacks a required field
        """
        self.logger = logger or get_logger("durloader.schema")
        if not header or all(not (cell or "").strip() for cell in header):
            raise StructuralError("Source header is empty: no columns to map")

        self.header = [cell.replace("\ufeff", "").strip() for cell in header]
        self.column_count = len(self.header)

        lookup = build_lookup(aliases or DEFAULT_ALIASES)
        self._indexes: dict[CanonicalField, int] = {}
        self.unrecognized: list[str] = []

        for index, cell in enumerate(self.header):
            field = lookup.get(normalize_header(cell))
            if field is None:
                if cell:
                    self.unrecognized.append(cell)
                continue
            if field in self._indexes:
                self.logger.warning(
                    f"Header column '{cell}' duplicates {field.value}; keeping column {self._indexes[field]}",
                    extra={"field": field.value, "column": index},
                )
                continue
            self._indexes[field] = index

        if not self._indexes:
            raise StructuralError(
                f"Header does not match the target schema: none of {self.header} is a known column"
            )

        if self.unrecognized:
            self.logger.info(
                f"Ignoring {len(self.unrecognized)} unrecognized header column(s): {self.unrecognized}"
            )

        missing_required = [f.value for f in REQUIRED_FIELDS if f not in self._indexes]
        if missing_required:
            if strict:
                raise StructuralError(
                    f"Header is missing required column(s): {', '.join(missing_required)}"
                )
            self.logger.warning(
                f"Header is missing required column(s): {', '.join(missing_required)}; "
                "every row will be rejected for them"
            )

    @classmethod
    def positional(cls, column_count: int, logger: logging.Logger | None = None) -> "SchemaMapper":
        """
        Build a mapper for a headerless source.

        Columns are taken in canonical field order, so the first column is
        the identifier, the second the member id, and so on.

        Raises:
            StructuralError: If the first row has no columns
        """
        if column_count <= 0:
            raise StructuralError("Source row has no columns to map")
        fields = list(CanonicalField)[:column_count]
        return cls([f.value for f in fields], logger=logger)

    @property
    def mapping(self) -> dict[CanonicalField, int]:
        return dict(self._indexes)

    @property
    def max_index(self) -> int:
        return max(self._indexes.values())

    def index_of(self, field: CanonicalField) -> int | None:
        return self._indexes.get(field)

    def is_mapped(self, field: CanonicalField) -> bool:
        return field in self._indexes

    def extract(self, fields: Sequence[str]) -> dict[CanonicalField, str | None]:
        """
        Pull the mapped raw values out of one row.

        Values are trimmed; empty cells and unmapped fields come back as None.
        Callers check the row width first (see RecordValidator).
        """
        values: dict[CanonicalField, str | None] = {}
        for field in CanonicalField:
            index = self._indexes.get(field)
            if index is None or index >= len(fields):
                values[field] = None
                continue
            raw = fields[index].strip()
            values[field] = raw or None
        return values

    def __repr__(self) -> str:
        mapped = ", ".join(f"{f.value}={i}" for f, i in self._indexes.items())
        return f"SchemaMapper({mapped})"
