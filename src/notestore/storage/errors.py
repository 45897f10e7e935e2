"""Storage layer errors."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Note


class StorageError(Exception):
    """Base exception for storage operations."""


class NoteNotFoundError(StorageError):
    """Raised when a read or delete targets a note that does not exist."""

    def __init__(self, filename: str, locator: str | None = None) -> None:
        self.filename = filename
        self.locator = locator
        where = f" at {locator}" if locator else ""
        super().__init__(f"Note '{filename}' not found{where}")


class PermissionDeniedError(StorageError):
    """Raised when a document-tree handle is invalid or its grant was revoked."""


class BackendFailureError(StorageError):
    """Raised when an underlying I/O primitive fails."""


class ParseFailureError(StorageError):
    """Raised when persisted JSON or a handle string cannot be parsed."""


class InvalidFilenameError(StorageError):
    """Raised when a note filename would address an entry outside its directory."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"Invalid note filename: {filename!r}")


class PartialRenameError(StorageError):
    """Raised when a renamed note was written but its previous entry could not be removed.

    Attributes:
        note: Note persisted under its new filename.
        previous_filename: Filename whose entry is still present.
    """

    def __init__(self, note: "Note", previous_filename: str, cause: Exception) -> None:
        self.note = note
        self.previous_filename = previous_filename
        self.cause = cause
        super().__init__(
            f"Saved '{note.filename}' but could not remove '{previous_filename}': {cause}"
        )


class PreferenceError(StorageError):
    """Raised when the preference store cannot complete an operation."""


class PreferenceTimeoutError(PreferenceError):
    """Raised when a preference-store call exceeds its deadline."""

    def __init__(self, operation: str, key: str, timeout: float) -> None:
        self.operation = operation
        self.key = key
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:g}s for key: {key}")


__all__ = [
    "StorageError",
    "NoteNotFoundError",
    "PermissionDeniedError",
    "BackendFailureError",
    "ParseFailureError",
    "InvalidFilenameError",
    "PartialRenameError",
    "PreferenceError",
    "PreferenceTimeoutError",
]
