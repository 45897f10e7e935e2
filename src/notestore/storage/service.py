"""Storage service presenting every backend as one hierarchical note store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional

from notestore.config.models import NotestoreConfig

from .backends import AppStorageBackend, DocumentTreeBackend, KeyValueBackend, NoteBackend
from .cache import StorageCache
from .documents import DocumentProvider, FolderPicker, LocalDocumentProvider
from .errors import NoteNotFoundError, PartialRenameError, PermissionDeniedError, StorageError
from .keyvalue import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .locations import human_readable_location, is_document_uri, parent_path
from .models import (
    Backend,
    DirectoryContents,
    Note,
    NotePreview,
    Platform,
    StorageLocationInfo,
    UserPreferences,
)
from .preferences import (
    DirectoryPreference,
    PreferenceStore,
    load_user_preferences,
    save_user_preferences,
)

LOGGER = logging.getLogger(__name__)

WEB_LOCATION_LABEL = "Browser Local Storage"
APP_LOCATION_LABEL = "App Documents Folder"
PUBLIC_LOCATION_LABEL = "Device Documents/Notes"


class StorageService:
    """Single owner of note storage for the running process.

    Construct one instance at startup, call :meth:`initialize`, and pass the
    instance to every caller. Reads go through the cache; writes and deletes
    go straight to the active backend and then invalidate the whole cache.
    The service is not safe for concurrent mutation; callers serialize
    writes.

    Args:
        platform: Platform being served.
        app_root: App-private directory used when no external folder is chosen.
        preferences: Timeout-guarded preference store.
        documents: Provider for document-tree URIs chosen through the picker.
        web_store: Key/value store holding notes on the web platform.
        folder_picker: External folder chooser.
        cache: Listing and note-body cache.
        preview_length: Characters kept in listing previews.
    """

    def __init__(
        self,
        *,
        platform: Platform,
        app_root: Path,
        preferences: PreferenceStore,
        documents: Optional[DocumentProvider] = None,
        web_store: Optional[KeyValueStore] = None,
        folder_picker: Optional[FolderPicker] = None,
        cache: Optional[StorageCache] = None,
        preview_length: int = 200,
    ) -> None:
        self._platform = platform
        self._preferences = preferences
        self._documents = documents
        self._folder_picker = folder_picker
        self._cache = cache or StorageCache()
        self._preview_length = preview_length
        self._directory_preference = DirectoryPreference(
            preferences, enabled=platform is not Platform.WEB
        )
        self._app_backend = AppStorageBackend(app_root, preview_length=preview_length)
        self._web_backend = KeyValueBackend(
            web_store or MemoryKeyValueStore(), preview_length=preview_length
        )
        self._custom_backend: Optional[NoteBackend] = None
        self._custom_handle = ""
        self._current_directory: Optional[str] = None
        self._user_preferences = UserPreferences()

    @classmethod
    def from_config(
        cls,
        config: NotestoreConfig,
        *,
        folder_picker: Optional[FolderPicker] = None,
        documents: Optional[DocumentProvider] = None,
    ) -> "StorageService":
        """Build a service wired to the filesystem locations named in ``config``."""
        settings = config.storage
        store = JsonFileKeyValueStore(Path(settings.state_path))
        if documents is None:
            documents = LocalDocumentProvider(
                {name: Path(mount) for name, mount in config.documents.volumes.items()},
                authority=config.documents.authority,
            )
        return cls(
            platform=Platform(settings.platform),
            app_root=Path(settings.app_root),
            preferences=PreferenceStore(store, timeout=settings.preference_timeout_seconds),
            documents=documents,
            web_store=store,
            folder_picker=folder_picker,
            cache=StorageCache(settings.cache_ttl_seconds),
            preview_length=settings.preview_length,
        )

    @property
    def platform(self) -> Platform:
        return self._platform

    @property
    def cache(self) -> StorageCache:
        return self._cache

    async def initialize(self) -> Backend:
        """Load persisted preferences and resolve the active backend."""
        await self._directory_preference.load()
        backend = await self.resolve_backend()
        await self.load_user_preferences()
        LOGGER.debug("Storage service ready using %s backend", backend.value)
        return backend

    # ------------------------------------------------------------------ #
    # Backend selection                                                  #
    # ------------------------------------------------------------------ #

    async def resolve_backend(self) -> Backend:
        """Return which backend serves requests right now."""
        if self._platform is Platform.WEB:
            return Backend.WEB
        if await self._directory_preference.load():
            return Backend.CUSTOM
        return Backend.APP

    async def _active_backend(self) -> NoteBackend:
        kind = await self.resolve_backend()
        if kind is Backend.WEB:
            backend: NoteBackend = self._web_backend
        elif kind is Backend.APP:
            backend = self._app_backend
        else:
            backend = self._custom_for(self._directory_preference.value)
        await backend.ensure_root()
        return backend

    def _custom_for(self, handle: str) -> NoteBackend:
        if self._custom_backend is not None and self._custom_handle == handle:
            return self._custom_backend
        if is_document_uri(handle):
            if self._documents is None:
                raise PermissionDeniedError(f"No document provider available for {handle}")
            backend: NoteBackend = DocumentTreeBackend(
                handle, self._documents, preview_length=self._preview_length
            )
        else:
            backend = AppStorageBackend(Path(handle), preview_length=self._preview_length)
        self._custom_backend = backend
        self._custom_handle = handle
        return backend

    def get_notes_directory(self) -> str:
        """Return the root locator of the active backend."""
        if self._platform is Platform.WEB:
            return self._web_backend.root
        handle = self._directory_preference.value
        if is_document_uri(handle):
            return handle
        if handle:
            return self._custom_for(handle).root
        return self._app_backend.root

    def get_current_directory(self) -> str:
        """Return the directory the caller last navigated to, or the root."""
        return self._current_directory or self.get_notes_directory()

    # ------------------------------------------------------------------ #
    # Notes and directories                                              #
    # ------------------------------------------------------------------ #

    async def list_directory(self, path: Optional[str] = None) -> DirectoryContents:
        """Return folders and note previews one level below ``path``.

        Args:
            path: Directory locator; defaults to the current directory.

        Returns:
            DirectoryContents: Sorted listing, possibly served from the cache.
        """
        await self._directory_preference.load()
        target = path or self.get_current_directory()
        try:
            backend = await self._active_backend()
        except PermissionDeniedError as exc:
            LOGGER.error("Error reading directory %s: %s", target, exc)
            return DirectoryContents(
                current_path=target,
                parent_path=parent_path(target, self.get_notes_directory()),
            )
        cached = self._cache.get_listing(target)
        if cached is not None:
            return cached
        contents = await backend.list_directory(target)
        self._cache.put_listing(target, contents)
        return contents

    async def get_all_notes(self) -> List[NotePreview]:
        """Return previews of the notes stored in the root directory."""
        await self._directory_preference.load()
        contents = await self.list_directory(self.get_notes_directory())
        return contents.notes

    async def read_note(self, filename: str, folder_path: Optional[str] = None) -> Note:
        """Return a note by filename.

        Raises:
            NoteNotFoundError: If no such note exists.
            StorageError: If the backend fails to read it.
        """
        backend = await self._active_backend()
        cached = self._cache.get_note(filename, folder_path)
        if cached is not None:
            return cached
        note = await backend.read_note(filename, folder_path)
        self._cache.put_note(note, folder_path)
        return note

    async def write_note(
        self,
        note: Note,
        previous_filename: Optional[str] = None,
        folder_path: Optional[str] = None,
    ) -> Note:
        """Persist ``note``, renaming it when ``previous_filename`` differs.

        A rename deletes the old entry first. When that delete fails for a
        reason other than the entry being absent, the new content is still
        written and :class:`PartialRenameError` is raised afterwards.

        Raises:
            PartialRenameError: If the note was saved but the old entry remains.
            StorageError: If the backend fails to write the note.
        """
        backend = await self._active_backend()
        leftover: Optional[StorageError] = None
        try:
            if previous_filename and previous_filename != note.filename:
                try:
                    await backend.delete_note(previous_filename, folder_path)
                except NoteNotFoundError:
                    LOGGER.debug("Previous note %s already absent", previous_filename)
                except StorageError as exc:
                    LOGGER.warning(
                        "Could not delete previous note %s during rename: %s",
                        previous_filename,
                        exc,
                    )
                    leftover = exc
            saved = await backend.write_note(note, folder_path)
        finally:
            self._cache.invalidate_all()

        if leftover is not None and previous_filename:
            raise PartialRenameError(saved, previous_filename, leftover)
        return saved

    async def delete_note(self, filename: str, folder_path: Optional[str] = None) -> None:
        """Delete a note.

        Raises:
            NoteNotFoundError: If no such note exists.
            StorageError: If the backend fails to delete it.
        """
        backend = await self._active_backend()
        try:
            await backend.delete_note(filename, folder_path)
        finally:
            self._cache.invalidate_all()

    # ------------------------------------------------------------------ #
    # Navigation                                                         #
    # ------------------------------------------------------------------ #

    async def navigate_to_directory(self, path: str) -> DirectoryContents:
        self._current_directory = path
        return await self.list_directory(path)

    async def navigate_to_parent(self) -> Optional[DirectoryContents]:
        """Move one level up; return ``None`` when already at the root."""
        contents = await self.list_directory()
        if contents.parent_path is None:
            return None
        return await self.navigate_to_directory(contents.parent_path)

    async def navigate_to_root(self) -> DirectoryContents:
        self._current_directory = None
        return await self.list_directory()

    # ------------------------------------------------------------------ #
    # Storage location                                                   #
    # ------------------------------------------------------------------ #

    async def set_custom_directory(self, handle: str) -> None:
        """Switch to ``handle``, or back to app storage when ``handle`` is empty."""
        await self._directory_preference.set(handle)
        self._custom_backend = None
        self._current_directory = None
        self._cache.invalidate_all()

    async def select_custom_directory(self) -> Optional[str]:
        """Ask the folder picker for a directory and switch to it.

        Returns:
            Optional[str]: Chosen handle, or ``None`` when nothing was selected.
        """
        if self._platform is not Platform.ANDROID or self._folder_picker is None:
            return None
        try:
            handle = await self._folder_picker.pick()
        except Exception as exc:
            LOGGER.error("Error selecting directory: %s", exc)
            return None
        if not handle:
            return None
        await self.set_custom_directory(handle)
        return handle

    async def get_storage_location_info(self) -> StorageLocationInfo:
        """Describe the active storage location for display."""
        await self._directory_preference.load()
        if self._platform is Platform.WEB:
            return StorageLocationInfo(location=WEB_LOCATION_LABEL, kind="app")

        current = self.get_notes_directory()
        if current == self._app_backend.root:
            return StorageLocationInfo(location=APP_LOCATION_LABEL, kind="app")
        if is_document_uri(current):
            return StorageLocationInfo(location=human_readable_location(current), kind="custom")
        if "Documents/Notes" in current:
            return StorageLocationInfo(location=PUBLIC_LOCATION_LABEL, kind="public")
        return StorageLocationInfo(location=current, kind="custom")

    # ------------------------------------------------------------------ #
    # User preferences                                                   #
    # ------------------------------------------------------------------ #

    async def load_user_preferences(self) -> UserPreferences:
        """Load display preferences, falling back to defaults on failure."""
        result = await load_user_preferences(self._preferences)
        if not result.ok:
            LOGGER.warning("Failed to load user preferences, using defaults: %s", result.error)
        self._user_preferences = result.unwrap_or_default()
        return self._user_preferences

    def get_user_preferences(self) -> UserPreferences:
        return self._user_preferences

    async def save_user_preferences(self, **changes: Any) -> UserPreferences:
        """Merge ``changes`` into the current preferences and persist them.

        The in-memory preferences are updated even if persisting fails.
        """
        self._user_preferences = self._user_preferences.model_copy(update=changes)
        try:
            await save_user_preferences(self._preferences, self._user_preferences)
        except StorageError as exc:
            LOGGER.error("Failed to save user preferences: %s", exc)
        return self._user_preferences

    async def set_show_timestamps(self, show: bool) -> UserPreferences:
        return await self.save_user_preferences(show_timestamps=show)

    async def set_welcome_completed(self, completed: bool) -> UserPreferences:
        return await self.save_user_preferences(welcome_completed=completed)


__all__ = ["StorageService"]
