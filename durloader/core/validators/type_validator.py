"""
TypeValidator - parses raw text cells into typed values.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from .base_validator import BaseValidator

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%Y%m%d")


def parse_integer(value: str) -> int:
    text = value.strip()
    if not text or not text.lstrip("+-").isdigit():
        raise ValueError(f"not an integer: {value!r}")
    return int(text)


def parse_decimal(value: str) -> Decimal:
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation as e:
        raise ValueError(f"not a decimal: {value!r}") from e
    if not parsed.is_finite():
        raise ValueError(f"not a finite decimal: {value!r}")
    return parsed


def parse_date(value: str) -> date:
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unsupported date: {value!r}")


def parse_datetime(value: str) -> datetime:
    """
    Parse an ISO datetime (or a bare date); naive values are taken as UTC.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = datetime.combine(parse_date(text), datetime.min.time())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TypeValidator(BaseValidator):
    """
    Validates that a raw cell parses as the expected type.

    Unlike the other validators it also produces the typed value:
    RecordValidator calls coerce() first and runs constraint rules on
    the result.

    Supported types: integer, decimal, date, datetime, string
    """

    PARSERS = {
        "integer": parse_integer,
        "int": parse_integer,
        "decimal": parse_decimal,
        "date": parse_date,
        "datetime": parse_datetime,
        "string": str,
        "str": str,
    }

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        expected_type = self.parameters.get("expected_type")
        if not expected_type:
            raise ValueError("TypeValidator requires 'expected_type' parameter")

        self.parser = self.PARSERS.get(str(expected_type).lower())
        if self.parser is None:
            raise ValueError(f"Unsupported type: {expected_type}")
        self.expected_type = str(expected_type).lower()

    def coerce(self, value: str | None) -> Any:
        """
        Parse a raw cell.

        Returns:
            The typed value, or None for an absent cell

        Raises:
            ValidationError: If the cell does not parse
        """
        if value is None:
            return None
        try:
            return self.parser(value)
        except (ValueError, TypeError):
            raise self.fail(f"invalid {self.field_name}")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None or not isinstance(value, str):
            return
        self.coerce(value)

    @property
    def rule_type(self) -> str:
        return "type_check"
