"""
Row validation against the DUR field rules.
"""

from .dur_rules import DUR_RULES, FIELD_TYPES
from .record_validator import RecordValidator

__all__ = [
    "RecordValidator",
    "DUR_RULES",
    "FIELD_TYPES",
]
