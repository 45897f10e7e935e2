"""Storage backend variants behind the uniform note operations."""

from .app import AppStorageBackend
from .base import NoteBackend
from .document_tree import DocumentTreeBackend
from .web import KeyValueBackend

__all__ = [
    "AppStorageBackend",
    "DocumentTreeBackend",
    "KeyValueBackend",
    "NoteBackend",
]
