"""
Batch writers.
"""

from .columnar_writer import BatchWriteOutcome, ColumnarBulkWriter, transpose

__all__ = [
    "ColumnarBulkWriter",
    "BatchWriteOutcome",
    "transpose",
]
