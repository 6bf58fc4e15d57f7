"""
Unit tests for command-line input validation.
"""

import pytest

from durloader.utils.validation import (
    InputValidationError,
    validate_batch_tag,
    validate_file_path,
    validate_positive_int,
)


class TestBatchTag:
    """Tests for validate_batch_tag"""

    @pytest.mark.parametrize("tag", ["CSV_20240401_093000", "DUR-2024.Q1", "run:7"])
    def test_valid(self, tag):
        """Test accepted tags are returned unchanged"""
        assert validate_batch_tag(tag) == tag

    def test_stripped(self):
        """Test surrounding whitespace is removed"""
        assert validate_batch_tag("  RUN1 ") == "RUN1"

    @pytest.mark.parametrize("tag", ["", "   ", "has space", "semi;colon", "x" * 51])
    def test_invalid(self, tag):
        """Test empty, oversized and odd-character tags are rejected"""
        with pytest.raises(InputValidationError):
            validate_batch_tag(tag)


class TestFilePath:
    """Tests for validate_file_path"""

    def test_existing_file(self, tmp_path):
        """Test an existing file passes must_exist"""
        path = tmp_path / "dur.csv"
        path.write_text("x")
        assert validate_file_path(str(path), must_exist=True) == path

    def test_missing_file(self, tmp_path):
        """Test a missing file fails must_exist"""
        with pytest.raises(InputValidationError, match="does not exist"):
            validate_file_path(str(tmp_path / "nope.csv"), must_exist=True)

    def test_null_byte(self):
        """Test null bytes are rejected"""
        with pytest.raises(InputValidationError):
            validate_file_path("dur\x00.csv")

    def test_is_value_error(self):
        """Test validation errors are ValueErrors"""
        assert issubclass(InputValidationError, ValueError)


class TestPositiveInt:
    """Tests for validate_positive_int"""

    def test_valid(self):
        """Test positive integers pass"""
        assert validate_positive_int(5, max_value=10) == 5

    @pytest.mark.parametrize("value", [0, -3, True, "5", 2.0])
    def test_invalid(self, value):
        """Test non-positive and non-integer values fail"""
        with pytest.raises(InputValidationError):
            validate_positive_int(value)

    def test_upper_bound(self):
        """Test the optional upper bound"""
        with pytest.raises(InputValidationError, match="cannot exceed"):
            validate_positive_int(11, max_value=10)
