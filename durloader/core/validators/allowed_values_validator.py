"""
AllowedValuesValidator - validates a field against a closed set of values.
"""

from typing import Any

from .base_validator import BaseValidator


class AllowedValuesValidator(BaseValidator):
    """
    Validates that a field is one of an exact, case-sensitive set of values.

    Parameters:
    - values: Accepted values
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        values = self.parameters.get("values")
        if not values:
            raise ValueError("AllowedValuesValidator requires a non-empty 'values' parameter")
        self.allowed = frozenset(values)

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None:
            return

        if value not in self.allowed:
            raise self.fail(f"invalid {self.field_name}")

    @property
    def rule_type(self) -> str:
        return "allowed_values"
