"""
RequiredFieldValidator - ensures a field is present and not empty.
"""

from typing import Any

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a required field is present and not null/empty.

    Fails if the field is unmapped, its cell is empty, or the value is
    whitespace only.
    """

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None:
            raise self.fail(f"{self.field_name} required")

        if isinstance(value, str) and value.strip() == "":
            raise self.fail(f"{self.field_name} required")

    @property
    def rule_type(self) -> str:
        return "required_field"
