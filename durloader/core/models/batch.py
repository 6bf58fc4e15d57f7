"""
Batch model: an ordered, bounded group of validated records (ephemeral).
"""

from pydantic import BaseModel, Field

from .dur_record import DurRecord


class Batch(BaseModel):
    """
    Records written together by one bulk statement.

    Attributes:
        sequence: 1-based position of the batch within the run
        batch_tag: Tag shared by every batch of the run
        records: Records in source order
        first_line: Data-row number of the first record
        last_line: Data-row number of the last record
    """

    sequence: int = Field(..., ge=1)
    batch_tag: str = Field(..., min_length=1, max_length=50)
    records: list[DurRecord] = Field(..., min_length=1)
    first_line: int = Field(..., ge=1)
    last_line: int = Field(..., ge=1)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def size(self) -> int:
        return len(self.records)

    def mark_processed(self) -> None:
        for record in self.records:
            record.mark_processed()

    def mark_failed(self, message: str) -> None:
        for record in self.records:
            record.mark_failed(message)
