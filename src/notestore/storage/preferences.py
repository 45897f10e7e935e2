"""Timeout-guarded preference persistence.

Two independent settings live in the key/value store: the chosen external
directory handle and the user's display preferences. Loading either one never
fails from the caller's point of view; failures fall back to defaults and are
logged.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, TypeVar

from pydantic import ValidationError

from .errors import (
    BackendFailureError,
    ParseFailureError,
    PreferenceTimeoutError,
    StorageError,
)
from .keyvalue import KeyValueStore
from .models import UserPreferences

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
DIRECTORY_PREFERENCE_KEY = "notes_directory_preference"
USER_PREFERENCES_KEY = "user_preferences"

T = TypeVar("T")


class PreferenceStore:
    """Key/value store wrapper that bounds every call with a deadline.

    Args:
        store: Underlying key/value persistence.
        timeout: Default deadline in seconds for each call.
    """

    def __init__(self, store: KeyValueStore, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._store = store
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    async def get(self, key: str, timeout: float | None = None) -> Optional[str]:
        return await self._guard("get", key, self._store.get_item(key), timeout)

    async def set(self, key: str, value: str, timeout: float | None = None) -> None:
        await self._guard("set", key, self._store.set_item(key, value), timeout)

    async def remove(self, key: str, timeout: float | None = None) -> None:
        await self._guard("remove", key, self._store.remove_item(key), timeout)

    async def _guard(
        self,
        operation: str,
        key: str,
        call: Awaitable[T],
        timeout: float | None,
    ) -> T:
        deadline = self._timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(call, timeout=deadline)
        except asyncio.TimeoutError as exc:
            raise PreferenceTimeoutError(operation, key, deadline) from exc
        except StorageError:
            raise
        except Exception as exc:
            raise BackendFailureError(
                f"Preference {operation} failed for key {key}: {exc}"
            ) from exc


class PreferenceState(enum.Enum):
    """Lifecycle of the in-memory directory preference."""

    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    RESOLVED = "resolved"


class DirectoryPreference:
    """Process-lifetime cache of the chosen external directory handle.

    The value is read from the store at most once. Concurrent first loads
    share one read; later loads return the resolved value immediately. An
    empty string means the app-private storage is in use.

    The guarding lock belongs to the event loop that performs the load, so a
    load abandoned in one ``asyncio.run`` call can be retried in another.
    """

    def __init__(self, store: PreferenceStore, *, enabled: bool = True) -> None:
        self._store = store
        self._enabled = enabled
        self._state = PreferenceState.NOT_LOADED
        self._value = ""
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def state(self) -> PreferenceState:
        return self._state

    @property
    def value(self) -> str:
        """Return the resolved handle, or an empty string when none is set."""
        return self._value

    async def load(self) -> str:
        """Resolve the stored handle, reading the store only on the first call."""
        if self._state is PreferenceState.RESOLVED:
            return self._value

        async with self._loop_lock():
            if self._state is PreferenceState.RESOLVED:
                return self._value
            self._state = PreferenceState.LOADING
            value = ""
            if self._enabled:
                try:
                    value = await self._store.get(DIRECTORY_PREFERENCE_KEY) or ""
                except StorageError as exc:
                    LOGGER.warning(
                        "Failed to load directory preference, using app storage: %s", exc
                    )
            self._value = value
            self._state = PreferenceState.RESOLVED
            return self._value

    def _loop_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def set(self, handle: str) -> None:
        """Replace the resolved handle and persist it.

        The in-memory value changes even if persisting fails; the failure is
        logged.
        """
        self._value = handle or ""
        self._state = PreferenceState.RESOLVED
        try:
            if self._value:
                await self._store.set(DIRECTORY_PREFERENCE_KEY, self._value)
            else:
                await self._store.remove(DIRECTORY_PREFERENCE_KEY)
        except StorageError as exc:
            LOGGER.error("Failed to save directory preference: %s", exc)


@dataclass(slots=True)
class PreferenceResult:
    """Outcome of loading user preferences.

    Attributes:
        value: Loaded preferences, or ``None`` when loading failed.
        error: Failure raised while loading, if any.
    """

    value: Optional[UserPreferences] = None
    error: Optional[StorageError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    def unwrap_or_default(self) -> UserPreferences:
        """Return the loaded preferences, or defaults when loading failed."""
        if self.ok and self.value is not None:
            return self.value
        return UserPreferences()


def merge_user_preferences(raw: str) -> UserPreferences:
    """Parse a persisted payload and merge it over the default preferences.

    Raises:
        ParseFailureError: If the payload is not a JSON object of valid fields.
    """
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ParseFailureError(f"Invalid user preferences payload: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseFailureError("User preferences payload must be a JSON object.")
    defaults = UserPreferences().model_dump(by_alias=True)
    try:
        return UserPreferences.model_validate({**defaults, **data})
    except ValidationError as exc:
        raise ParseFailureError(f"Invalid user preference values: {exc}") from exc


async def load_user_preferences(store: PreferenceStore) -> PreferenceResult:
    """Load user preferences without raising."""
    try:
        raw = await store.get(USER_PREFERENCES_KEY)
    except StorageError as exc:
        return PreferenceResult(error=exc)
    if not raw:
        return PreferenceResult(value=UserPreferences())
    try:
        return PreferenceResult(value=merge_user_preferences(raw))
    except ParseFailureError as exc:
        return PreferenceResult(error=exc)


async def save_user_preferences(store: PreferenceStore, preferences: UserPreferences) -> None:
    """Persist ``preferences`` as a flat camelCase record."""
    await store.set(USER_PREFERENCES_KEY, preferences.model_dump_json(by_alias=True))


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "DIRECTORY_PREFERENCE_KEY",
    "USER_PREFERENCES_KEY",
    "DirectoryPreference",
    "PreferenceResult",
    "PreferenceState",
    "PreferenceStore",
    "load_user_preferences",
    "merge_user_preferences",
    "save_user_preferences",
]
