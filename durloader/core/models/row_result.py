"""
RowResult model: the tagged outcome of validating one source row (ephemeral).
"""

from pydantic import BaseModel, Field, model_validator

from durloader.core.errors import RowValidationError

from .dur_record import DurRecord


class RowResult(BaseModel):
    """
    Either a validated record or the reasons the row was rejected, never both.

    Attributes:
        line_number: Data-row number (1 = first row after the header)
        source_line: Physical line in the source where the row starts
        raw_text: Row text exactly as read
        record: The validated record when the row passed
        reasons: Rejection reasons when the row failed
    """

    line_number: int = Field(..., ge=1)
    source_line: int | None = None
    raw_text: str = ""
    record: DurRecord | None = None
    reasons: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_exactly_one_outcome(self) -> "RowResult":
        """A row result carries a record or reasons, not both and not neither."""
        if self.record is not None and self.reasons:
            raise ValueError("RowResult cannot carry both a record and rejection reasons")
        if self.record is None and not self.reasons:
            raise ValueError("RowResult needs a record or at least one rejection reason")
        return self

    @classmethod
    def accepted(
        cls, line_number: int, record: DurRecord, raw_text: str = "", source_line: int | None = None
    ) -> "RowResult":
        return cls(line_number=line_number, source_line=source_line, raw_text=raw_text, record=record)

    @classmethod
    def rejected(
        cls, line_number: int, reasons: list[str], raw_text: str = "", source_line: int | None = None
    ) -> "RowResult":
        return cls(line_number=line_number, source_line=source_line, raw_text=raw_text, reasons=reasons)

    @property
    def passed(self) -> bool:
        return self.record is not None

    def unwrap(self) -> DurRecord:
        """
        Return the record, or raise RowValidationError for a rejected row.
        """
        if self.record is None:
            raise RowValidationError(self.line_number, self.reasons)
        return self.record
