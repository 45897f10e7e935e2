"""Data models exchanged between the storage service and its callers."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def from_timestamp(value: float) -> datetime:
    """Convert a POSIX timestamp in seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Naive timestamps are read as UTC.
Timestamp = Annotated[datetime, AfterValidator(_as_utc)]


class Platform(str, Enum):
    """Runtime platform the service is serving."""

    ANDROID = "android"
    IOS = "ios"
    WEB = "web"


class Backend(str, Enum):
    """Storage backend resolved for a request."""

    APP = "app"
    CUSTOM = "custom"
    WEB = "web"


class Note(BaseModel):
    """A markdown note and its backend locator.

    Attributes:
        filename: Name of the note without the ``.md`` suffix.
        content: Raw markdown body.
        created_at: Creation time (modification time on filesystem backends).
        updated_at: Last modification time.
        file_path: Backend-specific locator; callers treat it as opaque.
    """

    filename: str
    content: str = ""
    created_at: Timestamp = Field(default_factory=utcnow)
    updated_at: Timestamp = Field(default_factory=utcnow)
    file_path: str = ""


class NotePreview(BaseModel):
    """Listing projection of a note."""

    filename: str
    preview: str
    created_at: Timestamp
    updated_at: Timestamp
    file_path: str

    @classmethod
    def from_note(cls, note: Note, *, length: int = 200) -> "NotePreview":
        """Build a preview from the first ``length`` characters of ``note`` content."""
        return cls(
            filename=note.filename,
            preview=note.content[:length],
            created_at=note.created_at,
            updated_at=note.updated_at,
            file_path=note.file_path,
        )


class FolderItem(BaseModel):
    """A navigable subdirectory."""

    name: str
    path: str
    created_at: Timestamp
    updated_at: Timestamp


class DirectoryContents(BaseModel):
    """One level of a directory listing.

    Attributes:
        folders: Subdirectories sorted by case-insensitive name.
        notes: Note previews, most recently updated first.
        current_path: Locator of the listed directory.
        parent_path: Locator of the parent, or ``None`` at the backend root.
    """

    folders: List[FolderItem] = Field(default_factory=list)
    notes: List[NotePreview] = Field(default_factory=list)
    current_path: str
    parent_path: Optional[str] = None


class UserPreferences(BaseModel):
    """Display preferences persisted as a flat camelCase record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    show_timestamps: bool = Field(default=True, alias="showTimestamps")
    welcome_completed: bool = Field(default=False, alias="welcomeCompleted")


class StorageLocationInfo(BaseModel):
    """Human-readable description of the active storage location."""

    location: str
    kind: Literal["app", "public", "custom"]


def sort_folders(folders: List[FolderItem]) -> List[FolderItem]:
    """Return folders ordered by case-insensitive name."""
    return sorted(folders, key=lambda folder: folder.name.casefold())


def sort_notes(notes: List[NotePreview]) -> List[NotePreview]:
    """Return notes ordered by most recent update first."""
    return sorted(notes, key=lambda note: note.updated_at, reverse=True)


__all__ = [
    "Platform",
    "Backend",
    "Note",
    "NotePreview",
    "FolderItem",
    "DirectoryContents",
    "UserPreferences",
    "StorageLocationInfo",
    "sort_folders",
    "sort_notes",
    "utcnow",
    "from_timestamp",
]
