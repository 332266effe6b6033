"""
Error taxonomy for the marks engine.

Validation and merge-row errors are returned inside result objects,
TransientPersistenceError is caught by the sync resolver and turned into
an offline draft. Nothing here is meant to escape a batch operation.
"""


class MarksError(Exception):
    """Base class for marks engine errors."""


class MarksValidationError(MarksError):
    """A value that must never be persisted (exceeds max, not numeric, not enrolled)."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


class TransientPersistenceError(MarksError):
    """The record store failed or was unreachable."""


class RecordNotFoundError(MarksError):
    pass


class MergeRowError(MarksError):
    def __init__(self, row, message):
        super().__init__(message)
        self.row = row
        self.message = message

    def __str__(self):
        return f"Row {self.row}: {self.message}"
