"""Shared contract for note storage backends."""

from __future__ import annotations

import abc
import asyncio
import logging
from typing import Awaitable, Iterable, List, Optional, TypeVar

from notestore.storage.locations import parent_path
from notestore.storage.models import (
    DirectoryContents,
    FolderItem,
    Note,
    NotePreview,
    sort_folders,
    sort_notes,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_PREVIEW_LENGTH = 200

T = TypeVar("T")


class NoteBackend(abc.ABC):
    """One storage variant behind the uniform note operations.

    Listings are always one level deep. Per-entry failures while listing are
    logged and dropped; failures of single-note operations propagate.
    """

    def __init__(self, *, preview_length: int = DEFAULT_PREVIEW_LENGTH) -> None:
        self.preview_length = preview_length

    @property
    @abc.abstractmethod
    def root(self) -> str:
        """Return the locator of the backend root directory."""

    async def ensure_root(self) -> None:
        """Prepare the root directory before use."""

    @abc.abstractmethod
    async def list_directory(self, path: Optional[str] = None) -> DirectoryContents:
        """List folders and note previews directly inside ``path``."""

    @abc.abstractmethod
    async def read_note(self, filename: str, folder_path: Optional[str] = None) -> Note:
        """Return the full note, raising ``NoteNotFoundError`` when absent."""

    @abc.abstractmethod
    async def write_note(self, note: Note, folder_path: Optional[str] = None) -> Note:
        """Persist ``note`` and return it with its resolved locator."""

    @abc.abstractmethod
    async def delete_note(self, filename: str, folder_path: Optional[str] = None) -> None:
        """Remove a note, raising ``NoteNotFoundError`` when absent."""

    # ------------------------------------------------------------------ #
    # Helpers shared by implementations                                  #
    # ------------------------------------------------------------------ #

    def build_contents(
        self,
        folders: Iterable[FolderItem],
        notes: Iterable[NotePreview],
        current_path: str,
    ) -> DirectoryContents:
        """Assemble a sorted listing for ``current_path``."""
        return DirectoryContents(
            folders=sort_folders(list(folders)),
            notes=sort_notes(list(notes)),
            current_path=current_path,
            parent_path=parent_path(current_path, self.root),
        )

    def preview(self, note: Note) -> NotePreview:
        return NotePreview.from_note(note, length=self.preview_length)


async def gather_entries(tasks: Iterable[Awaitable[Optional[T]]], *, context: str) -> List[T]:
    """Await entry reads concurrently, dropping entries that failed or returned ``None``."""
    results = await asyncio.gather(*tasks, return_exceptions=True)
    entries: List[T] = []
    for result in results:
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            LOGGER.warning("Skipping unreadable entry in %s: %s", context, result)
            continue
        if result is not None:
            entries.append(result)
    return entries


__all__ = ["DEFAULT_PREVIEW_LENGTH", "NoteBackend", "gather_entries"]
