"""Storage abstraction over app-private, document-tree, and key/value backends."""

from .cache import StorageCache
from .documents import DocumentFile, FolderPicker, LocalDocumentProvider, StaticFolderPicker
from .errors import (
    BackendFailureError,
    InvalidFilenameError,
    NoteNotFoundError,
    ParseFailureError,
    PartialRenameError,
    PermissionDeniedError,
    PreferenceError,
    PreferenceTimeoutError,
    StorageError,
)
from .keyvalue import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .locations import human_readable_location, parent_path
from .models import (
    Backend,
    DirectoryContents,
    FolderItem,
    Note,
    NotePreview,
    Platform,
    StorageLocationInfo,
    UserPreferences,
)
from .preferences import PreferenceStore
from .service import StorageService

__all__ = [
    "Backend",
    "BackendFailureError",
    "DirectoryContents",
    "DocumentFile",
    "FolderItem",
    "FolderPicker",
    "InvalidFilenameError",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "LocalDocumentProvider",
    "MemoryKeyValueStore",
    "Note",
    "NoteNotFoundError",
    "NotePreview",
    "ParseFailureError",
    "PartialRenameError",
    "PermissionDeniedError",
    "Platform",
    "PreferenceError",
    "PreferenceStore",
    "PreferenceTimeoutError",
    "StaticFolderPicker",
    "StorageCache",
    "StorageError",
    "StorageLocationInfo",
    "StorageService",
    "UserPreferences",
    "human_readable_location",
    "parent_path",
]
