"""
Field rule implementations.

Provides validators for required fields, type parsing, numeric ranges,
maximum lengths and closed value sets.
"""

from .allowed_values_validator import AllowedValuesValidator
from .base_validator import BaseValidator, ValidationError
from .length_validator import LengthValidator
from .range_validator import RangeValidator
from .required_field_validator import RequiredFieldValidator
from .type_validator import TypeValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RequiredFieldValidator",
    "TypeValidator",
    "RangeValidator",
    "LengthValidator",
    "AllowedValuesValidator",
]
