"""Flat key/value backend used on the web platform."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from notestore.storage.errors import NoteNotFoundError, ParseFailureError
from notestore.storage.keyvalue import KeyValueStore
from notestore.storage.locations import NOTE_SUFFIX
from notestore.storage.models import DirectoryContents, Note, sort_notes, utcnow

from .base import NoteBackend

LOGGER = logging.getLogger(__name__)

NOTES_KEY = "notes"
WEB_ROOT = "Notes"


class StoredNote(BaseModel):
    """Serialized shape of one entry in the web notes array."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    filename: str
    content: str = ""
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class KeyValueBackend(NoteBackend):
    """All notes kept as one JSON array under a single key.

    There are no folders: listings are always the flat root with no parent,
    and ``folder_path`` arguments are ignored.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = NOTES_KEY,
        root: str = WEB_ROOT,
        preview_length: int = 200,
    ) -> None:
        super().__init__(preview_length=preview_length)
        self._store = store
        self._key = key
        self._root = root

    @property
    def root(self) -> str:
        return self._root

    async def list_directory(self, path: Optional[str] = None) -> DirectoryContents:
        try:
            entries = await self._load()
        except ParseFailureError as exc:
            LOGGER.warning("Ignoring unreadable web notes payload: %s", exc)
            entries = []
        notes = [self.preview(self._to_note(entry)) for entry in entries]
        return DirectoryContents(
            folders=[],
            notes=sort_notes(notes),
            current_path=self._root,
            parent_path=None,
        )

    async def read_note(self, filename: str, folder_path: Optional[str] = None) -> Note:
        for entry in await self._load():
            if entry.filename == filename:
                return self._to_note(entry)
        raise NoteNotFoundError(filename, self._locator(filename))

    async def write_note(self, note: Note, folder_path: Optional[str] = None) -> Note:
        entries = await self._load()
        stored = StoredNote(
            filename=note.filename,
            content=note.content,
            created_at=note.created_at,
            updated_at=utcnow(),
        )
        for index, entry in enumerate(entries):
            if entry.filename == note.filename:
                entries[index] = stored
                break
        else:
            entries.append(stored)
        await self._save(entries)
        return self._to_note(stored)

    async def delete_note(self, filename: str, folder_path: Optional[str] = None) -> None:
        entries = await self._load()
        remaining = [entry for entry in entries if entry.filename != filename]
        if len(remaining) == len(entries):
            raise NoteNotFoundError(filename, self._locator(filename))
        await self._save(remaining)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _locator(self, filename: str) -> str:
        return f"{self._root}/{filename}{NOTE_SUFFIX}"

    def _to_note(self, entry: StoredNote) -> Note:
        return Note(
            filename=entry.filename,
            content=entry.content,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
            file_path=self._locator(entry.filename),
        )

    async def _load(self) -> List[StoredNote]:
        raw = await self._store.get_item(self._key)
        if not raw:
            return []
        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ParseFailureError(f"Invalid web notes payload: {exc}") from exc
        if not isinstance(data, list):
            raise ParseFailureError("Web notes payload must be a JSON array.")

        entries: List[StoredNote] = []
        for item in data:
            try:
                entries.append(StoredNote.model_validate(item))
            except ValidationError as exc:
                LOGGER.warning("Skipping malformed web note entry: %s", exc)
        return entries

    async def _save(self, entries: List[StoredNote]) -> None:
        payload = [entry.model_dump(mode="json", by_alias=True) for entry in entries]
        await self._store.set_item(self._key, json.dumps(payload))


__all__ = ["KeyValueBackend", "NOTES_KEY", "StoredNote", "WEB_ROOT"]
