"""
LengthValidator - validates string values fit their target column.
"""

from typing import Any

from .base_validator import BaseValidator


class LengthValidator(BaseValidator):
    """
    Validates that a string field is at most max_length characters.

    Parameters:
    - max_length: Maximum number of characters (inclusive)
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        self.max_length = self.parameters.get("max_length")
        if not isinstance(self.max_length, int) or self.max_length < 1:
            raise ValueError("LengthValidator requires a positive integer 'max_length' parameter")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None:
            return

        if len(str(value)) > self.max_length:
            raise self.fail(f"{self.field_name} exceeds {self.max_length} characters")

    @property
    def rule_type(self) -> str:
        return "max_length"
