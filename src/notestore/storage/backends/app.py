"""App-private filesystem backend."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from notestore.storage.errors import BackendFailureError, NoteNotFoundError
from notestore.storage.locations import (
    NOTE_SUFFIX,
    directory_path,
    join_locator,
    note_locator,
    strip_note_suffix,
)
from notestore.storage.models import (
    DirectoryContents,
    FolderItem,
    Note,
    NotePreview,
    from_timestamp,
)

from .base import NoteBackend, gather_entries

LOGGER = logging.getLogger(__name__)


class AppStorageBackend(NoteBackend):
    """Notes stored as ``<filename>.md`` files below an app-owned directory.

    The root is created on first use. Directory locators are plain paths with
    a trailing separator.
    """

    def __init__(self, root: Path, *, preview_length: int = 200) -> None:
        super().__init__(preview_length=preview_length)
        self._root_path = root.expanduser()

    @property
    def root(self) -> str:
        return directory_path(self._root_path.as_posix())

    async def ensure_root(self) -> None:
        try:
            await aiofiles.os.makedirs(self._root_path, exist_ok=True)
        except OSError as exc:
            raise BackendFailureError(f"Unable to create {self._root_path}: {exc}") from exc

    async def list_directory(self, path: Optional[str] = None) -> DirectoryContents:
        current = directory_path(path) if path else self.root
        try:
            names = sorted(await aiofiles.os.listdir(current))
        except OSError as exc:
            LOGGER.error("Error reading directory %s: %s", current, exc)
            return self.build_contents([], [], current)

        note_names = [name for name in names if name.endswith(NOTE_SUFFIX)]
        other_names = [name for name in names if not name.endswith(NOTE_SUFFIX)]

        folders, notes = await asyncio.gather(
            gather_entries(
                (self._folder_item(current, name) for name in other_names), context=current
            ),
            gather_entries(
                (self._note_preview(current, name) for name in note_names), context=current
            ),
        )
        return self.build_contents(folders, notes, current)

    async def read_note(self, filename: str, folder_path: Optional[str] = None) -> Note:
        locator = note_locator(join_locator(self.root, folder_path), filename)
        return await self._load(locator, filename)

    async def write_note(self, note: Note, folder_path: Optional[str] = None) -> Note:
        locator = note_locator(join_locator(self.root, folder_path), note.filename)
        await self.ensure_root()
        try:
            async with aiofiles.open(locator, "w", encoding="utf-8") as handle:
                await handle.write(note.content)
            info = await aiofiles.os.stat(locator)
        except OSError as exc:
            raise BackendFailureError(f"Unable to write {locator}: {exc}") from exc
        return note.model_copy(
            update={"file_path": locator, "updated_at": from_timestamp(info.st_mtime)}
        )

    async def delete_note(self, filename: str, folder_path: Optional[str] = None) -> None:
        locator = note_locator(join_locator(self.root, folder_path), filename)
        try:
            await aiofiles.os.remove(locator)
        except FileNotFoundError as exc:
            raise NoteNotFoundError(filename, locator) from exc
        except OSError as exc:
            raise BackendFailureError(f"Unable to delete {locator}: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    async def _load(self, locator: str, filename: str) -> Note:
        try:
            async with aiofiles.open(locator, "r", encoding="utf-8") as handle:
                content = await handle.read()
            info = await aiofiles.os.stat(locator)
        except FileNotFoundError as exc:
            raise NoteNotFoundError(filename, locator) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise BackendFailureError(f"Unable to read {locator}: {exc}") from exc
        timestamp = from_timestamp(info.st_mtime)
        return Note(
            filename=filename,
            content=content,
            created_at=timestamp,
            updated_at=timestamp,
            file_path=locator,
        )

    async def _note_preview(self, directory: str, name: str) -> Optional[NotePreview]:
        locator = f"{directory}{name}"
        if not await aiofiles.os.path.isfile(locator):
            return None
        note = await self._load(locator, strip_note_suffix(name))
        return self.preview(note)

    async def _folder_item(self, directory: str, name: str) -> Optional[FolderItem]:
        locator = f"{directory}{name}"
        if not await aiofiles.os.path.isdir(locator):
            return None
        info = await aiofiles.os.stat(locator)
        timestamp = from_timestamp(info.st_mtime)
        return FolderItem(
            name=name,
            path=f"{locator}/",
            created_at=timestamp,
            updated_at=timestamp,
        )


__all__ = ["AppStorageBackend"]
