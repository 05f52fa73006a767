"""Bulk import exception hierarchy.

Row-level problems are data (``RowError``), never exceptions. Everything
here aborts an operation: a whole file, a whole batch, or a session step.
"""

from __future__ import annotations


class BulkImportError(Exception):
    """Base exception for all bulk import errors."""


class ParseError(BulkImportError):
    """File is unreadable, empty, or has no data rows."""


class UnsupportedFormatError(ParseError):
    """File extension or MIME type is not an accepted spreadsheet format."""


class FileTooLargeError(ParseError):
    """Upload exceeds the configured size ceiling."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"File is {size} bytes, limit is {limit} bytes")


class HeaderError(BulkImportError):
    """One or more required headers are absent from the file."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class SubmitError(BulkImportError):
    """The external submit call failed as a whole."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class InvalidTransitionError(BulkImportError):
    """An import session operation is not allowed in its current state."""

    def __init__(self, current: str, attempted: str) -> None:
        self.current = current
        self.attempted = attempted
        super().__init__(f"Cannot {attempted} while session is {current}")


class UnknownImportKindError(BulkImportError):
    """No schema registered under the requested import kind."""
