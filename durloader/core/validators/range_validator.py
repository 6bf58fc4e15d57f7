"""
RangeValidator - validates numeric values are within a specified range.
"""

from typing import Any

from .base_validator import BaseValidator


class RangeValidator(BaseValidator):
    """
    Validates that a numeric field is within a specified range.

    Parameters:
    - min: Minimum value (inclusive)
    - max: Maximum value (inclusive)
    - message: Reason reported on failure (optional)
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        self.min_value = self.parameters.get("min")
        self.max_value = self.parameters.get("max")

        if self.min_value is None and self.max_value is None:
            raise ValueError("RangeValidator requires at least one of: min, max")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        # Absent values are the required-field rule's concern
        if value is None:
            return

        if self.min_value is not None and value < self.min_value:
            if self.min_value == 0:
                raise self.fail(f"{self.field_name} must not be negative")
            raise self.fail(f"{self.field_name} out of range")

        if self.max_value is not None and value > self.max_value:
            raise self.fail(f"{self.field_name} out of range")

    @property
    def rule_type(self) -> str:
        return "range"
