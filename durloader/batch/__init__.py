"""
Batch loading: reading, batching, bulk writing and run orchestration.
"""

from .batcher import Batcher
from .pipeline import LoadCoordinator
from .readers import CSVReader, DelimitedSource, SourceRow
from .writers import BatchWriteOutcome, ColumnarBulkWriter

__all__ = [
    "LoadCoordinator",
    "Batcher",
    "CSVReader",
    "DelimitedSource",
    "SourceRow",
    "ColumnarBulkWriter",
    "BatchWriteOutcome",
]
