"""
Base validator interface for all field rules.

All validators inherit from BaseValidator and implement validate().
"""

from abc import ABC, abstractmethod
from typing import Any


class ValidationError(Exception):
    """Raised by a validator when its rule fails; message is the rejection reason."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message
        super().__init__(message)


class BaseValidator(ABC):
    """
    Abstract base class for all validators.

    Each validator checks one rule type (required, length, range,
    allowed values, type) for one canonical field.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        """
        Initialize validator.

        Args:
            field_name: Canonical name of the field to validate
            parameters: Rule-specific parameters (e.g., min/max for range)
        """
        self.field_name = field_name
        self.parameters = parameters or {}
        self.message: str | None = self.parameters.get("message")

    @abstractmethod
    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate a value against this rule.

        Args:
            value: The parsed field value (None when absent)
            record: All parsed values of the row, keyed by canonical name

        Raises:
            ValidationError: If validation fails
        """

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""

    def fail(self, default_message: str) -> ValidationError:
        return ValidationError(
            rule_name=self.rule_type,
            field_name=self.field_name,
            message=self.message or default_message,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name}, params={self.parameters})"
