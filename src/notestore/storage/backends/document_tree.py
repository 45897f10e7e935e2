"""Backend for a user-granted external folder reached through document-tree URIs."""

from __future__ import annotations

import logging
from typing import Optional

from notestore.storage.documents import DocumentFile, DocumentProvider
from notestore.storage.errors import StorageError
from notestore.storage.locations import NOTE_SUFFIX, join_locator, note_locator, strip_note_suffix
from notestore.storage.models import DirectoryContents, FolderItem, Note, NotePreview

from .base import NoteBackend, gather_entries

LOGGER = logging.getLogger(__name__)


class DocumentTreeBackend(NoteBackend):
    """Notes stored in a granted document tree.

    The tree must already exist; this backend never creates directories under
    a user-granted folder. All I/O goes through the document provider.
    """

    def __init__(
        self,
        tree_uri: str,
        provider: DocumentProvider,
        *,
        preview_length: int = 200,
    ) -> None:
        super().__init__(preview_length=preview_length)
        self._tree_uri = tree_uri
        self._provider = provider

    @property
    def root(self) -> str:
        return self._tree_uri

    async def list_directory(self, path: Optional[str] = None) -> DirectoryContents:
        current = path or self.root
        try:
            entries = await self._provider.list_files(current)
        except StorageError as exc:
            LOGGER.error("Error reading document tree %s: %s", current, exc)
            return self.build_contents([], [], current)

        folders = [
            FolderItem(
                name=entry.name,
                path=entry.uri,
                created_at=entry.last_modified,
                updated_at=entry.last_modified,
            )
            for entry in entries
            if entry.type == "directory"
        ]
        markdown = [
            entry for entry in entries if entry.type == "file" and entry.name.endswith(NOTE_SUFFIX)
        ]
        notes = await gather_entries(
            (self._note_preview(entry) for entry in markdown), context=current
        )
        return self.build_contents(folders, notes, current)

    async def read_note(self, filename: str, folder_path: Optional[str] = None) -> Note:
        uri = note_locator(join_locator(self.root, folder_path), filename)
        content = await self._provider.read_file(uri)
        info = await self._provider.stat(uri)
        return Note(
            filename=filename,
            content=content,
            created_at=info.last_modified,
            updated_at=info.last_modified,
            file_path=uri,
        )

    async def write_note(self, note: Note, folder_path: Optional[str] = None) -> Note:
        uri = note_locator(join_locator(self.root, folder_path), note.filename)
        await self._provider.write_file(uri, note.content)
        info = await self._provider.stat(uri)
        return note.model_copy(update={"file_path": uri, "updated_at": info.last_modified})

    async def delete_note(self, filename: str, folder_path: Optional[str] = None) -> None:
        uri = note_locator(join_locator(self.root, folder_path), filename)
        await self._provider.unlink(uri)

    async def _note_preview(self, entry: DocumentFile) -> NotePreview:
        content = await self._provider.read_file(entry.uri)
        return NotePreview(
            filename=strip_note_suffix(entry.name),
            preview=content[: self.preview_length],
            created_at=entry.last_modified,
            updated_at=entry.last_modified,
            file_path=entry.uri,
        )


__all__ = ["DocumentTreeBackend"]
