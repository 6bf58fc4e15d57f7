"""
Input validation for command-line arguments.

Checks the values a user hands the loader (file paths, batch tags,
sizes) before any work starts.
"""

import re
from pathlib import Path


class InputValidationError(ValueError):
    """Raised when a user-supplied value is unusable."""


BATCH_TAG_PATTERN = re.compile(r"^[A-Za-z0-9_\-\.:]+$")


def validate_batch_tag(batch_tag: str, field_name: str = "batch_tag") -> str:
    """
    Validate a batch tag.

    Tags are 1-50 characters of letters, digits, and _ - . :

    Examples:
        >>> validate_batch_tag("CSV_20240401_093000")
        'CSV_20240401_093000'
    """
    if not batch_tag or not isinstance(batch_tag, str):
        raise InputValidationError(f"{field_name} must be a non-empty string")

    batch_tag = batch_tag.strip()
    if not batch_tag:
        raise InputValidationError(f"{field_name} cannot be empty or whitespace-only")

    if len(batch_tag) > 50:
        raise InputValidationError(f"{field_name} exceeds maximum length of 50 characters")

    if not BATCH_TAG_PATTERN.match(batch_tag):
        raise InputValidationError(
            f"{field_name} contains invalid characters. "
            "Only letters, digits, underscores, hyphens, dots and colons are allowed."
        )

    return batch_tag


def validate_file_path(file_path: str, field_name: str = "file_path", must_exist: bool = False) -> Path:
    """
    Validate a file path.

    Args:
        file_path: The file path to validate
        field_name: Name of the field (for error messages)
        must_exist: Require the path to be an existing regular file

    Returns:
        The path as a Path object

    Raises:
        InputValidationError: If validation fails
    """
    if not file_path or not isinstance(file_path, str):
        raise InputValidationError(f"{field_name} must be a non-empty string")

    file_path = file_path.strip()
    if not file_path:
        raise InputValidationError(f"{field_name} cannot be empty or whitespace-only")

    if "\x00" in file_path:
        raise InputValidationError(f"{field_name} contains null bytes")

    if len(file_path) > 4096:
        raise InputValidationError(f"{field_name} exceeds maximum length of 4096 characters")

    path = Path(file_path)
    if must_exist and not path.is_file():
        raise InputValidationError(f"{field_name} does not exist or is not a file: {file_path}")

    return path


def validate_positive_int(value: int, field_name: str = "value", max_value: int | None = None) -> int:
    """
    Validate a strictly positive integer, optionally bounded above.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputValidationError(f"{field_name} must be an integer")

    if value < 1:
        raise InputValidationError(f"{field_name} must be at least 1, got {value}")

    if max_value is not None and value > max_value:
        raise InputValidationError(f"{field_name} cannot exceed {max_value}, got {value}")

    return value
