"""
Error taxonomy for a load run.

Structural and connection errors abort the run. Row and batch errors are
recorded on the IngestionReport and the run continues. A verification
mismatch is only ever a warning.
"""


class IngestionError(Exception):
    """Base class for all loader errors."""


class StructuralError(IngestionError):
    """Source or target shape does not match what the loader expects."""


class RowValidationError(IngestionError):
    """A single source row failed one or more constraints."""

    def __init__(self, line_number: int, reasons: list[str]):
        self.line_number = line_number
        self.reasons = list(reasons)
        super().__init__(f"line {line_number}: {'; '.join(self.reasons)}")


class StoreConnectionError(IngestionError):
    """The store stayed unreachable after all connection attempts."""

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


class BatchWriteError(IngestionError):
    """The store rejected a whole batch."""

    def __init__(
        self,
        message: str,
        batch_sequence: int | None = None,
        batch_size: int = 0,
        sqlstate: str | None = None,
    ):
        self.batch_sequence = batch_sequence
        self.batch_size = batch_size
        self.sqlstate = sqlstate
        super().__init__(message)


class VerificationMismatch(IngestionError):
    """Row count found in the store differs from the rows reported inserted."""

    def __init__(self, batch_tag: str, expected: int, actual: int):
        self.batch_tag = batch_tag
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Verification mismatch for batch tag '{batch_tag}': "
            f"expected {expected} rows, found {actual}"
        )
