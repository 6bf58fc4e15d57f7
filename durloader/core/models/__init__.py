"""
Core data models for the DUR bulk loader.

All models use Pydantic for runtime validation and type safety.
"""

from .batch import Batch
from .dur_record import DurRecord, Period, RecordStatus
from .ingestion_report import (
    BatchFailure,
    IngestionReport,
    LineError,
    ReportFinalizedError,
    RunState,
)
from .row_result import RowResult
from .target_table import DUR_QUARTERLY_LOAD, ColumnSpec, TargetTable

__all__ = [
    "DurRecord",
    "Period",
    "RecordStatus",
    "Batch",
    "RowResult",
    "IngestionReport",
    "LineError",
    "BatchFailure",
    "ReportFinalizedError",
    "RunState",
    "TargetTable",
    "ColumnSpec",
    "DUR_QUARTERLY_LOAD",
]
