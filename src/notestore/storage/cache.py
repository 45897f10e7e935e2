"""In-memory cache of directory listings and note bodies."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Tuple

from .models import DirectoryContents, Note

LOGGER = logging.getLogger(__name__)

DEFAULT_VALIDITY_SECONDS = 5 * 60

NoteKey = Tuple[str, str]
ROOT_FOLDER_KEY = "root"


class StorageCache:
    """Time-boxed cache shared by every backend.

    Validity is tracked with one ``last_update`` stamp for the whole cache
    rather than per entry. ``invalidate_all`` resets the stamp to zero so the
    next lookup misses even if the window has not elapsed.
    """

    def __init__(
        self,
        validity_seconds: float = DEFAULT_VALIDITY_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._validity = validity_seconds
        self._clock = clock
        self._listings: Dict[str, DirectoryContents] = {}
        self._notes: Dict[NoteKey, Note] = {}
        self._last_update = 0.0

    @property
    def last_update(self) -> float:
        """Return the clock value of the last listing refresh (0 after invalidation)."""
        return self._last_update

    def is_valid(self) -> bool:
        """Return whether cached entries may still be served."""
        if self._last_update == 0.0:
            return False
        return self._clock() - self._last_update < self._validity

    @staticmethod
    def note_key(filename: str, folder_path: Optional[str]) -> NoteKey:
        """Return the cache key for a note body."""
        folder = folder_path.strip() if folder_path else ""
        return (filename, folder or ROOT_FOLDER_KEY)

    def get_listing(self, directory: str) -> DirectoryContents | None:
        if not self.is_valid():
            return None
        cached = self._listings.get(directory)
        if cached is not None:
            LOGGER.debug("Listing cache hit for %s", directory)
        return cached

    def put_listing(self, directory: str, contents: DirectoryContents) -> None:
        self._listings[directory] = contents
        self._last_update = self._clock()

    def get_note(self, filename: str, folder_path: Optional[str]) -> Note | None:
        if not self.is_valid():
            return None
        cached = self._notes.get(self.note_key(filename, folder_path))
        if cached is not None:
            LOGGER.debug("Note cache hit for %s", filename)
        return cached

    def put_note(self, note: Note, folder_path: Optional[str]) -> None:
        self._notes[self.note_key(note.filename, folder_path)] = note
        if self._last_update == 0.0:
            self._last_update = self._clock()

    def invalidate_all(self) -> None:
        """Drop every cached listing and note body."""
        self._listings.clear()
        self._notes.clear()
        self._last_update = 0.0
        LOGGER.debug("Storage cache invalidated")

    def __len__(self) -> int:
        return len(self._listings) + len(self._notes)


__all__ = ["DEFAULT_VALIDITY_SECONDS", "StorageCache"]
