"""
Header alias table and schema mapping.
"""

from .aliases import DEFAULT_ALIASES, REQUIRED_FIELDS, CanonicalField
from .mapper import SchemaMapper

__all__ = [
    "CanonicalField",
    "DEFAULT_ALIASES",
    "REQUIRED_FIELDS",
    "SchemaMapper",
]
