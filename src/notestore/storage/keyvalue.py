"""Key/value persistence primitives.

These stand in for the platform key/value stores (browser local storage,
async device storage). The storage layer only needs string values keyed by
string names.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Optional, Protocol

import aiofiles
import aiofiles.os

from .errors import BackendFailureError, ParseFailureError


class KeyValueStore(Protocol):
    """Asynchronous string key/value store."""

    async def get_item(self, key: str) -> Optional[str]: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Key/value store kept in process memory."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        """Return a copy of the stored items."""
        return dict(self._data)


class JsonFileKeyValueStore:
    """Key/value store persisted as a single JSON object on disk.

    Every call re-reads the file, so several stores pointing at the same path
    observe each other's writes.
    """

    def __init__(self, path: Path) -> None:
        self._path = path.expanduser()

    @property
    def path(self) -> Path:
        """Return the backing file path."""
        return self._path

    async def get_item(self, key: str) -> Optional[str]:
        data = await self._read()
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        await self._update(key, value)

    async def remove_item(self, key: str) -> None:
        await self._update(key, None)

    async def _read(self) -> Dict[str, str]:
        if not await aiofiles.os.path.exists(self._path):
            return {}
        try:
            async with aiofiles.open(self._path, "r", encoding="utf-8") as handle:
                raw = json.loads(await handle.read() or "{}")
        except json.JSONDecodeError as exc:
            raise ParseFailureError(f"Invalid key/value data in {self._path}: {exc}") from exc
        except OSError as exc:
            raise BackendFailureError(f"Unable to read {self._path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ParseFailureError(f"Key/value file {self._path} must contain a JSON object.")
        return {str(key): str(value) for key, value in raw.items()}

    async def _update(self, key: str, value: Optional[str]) -> None:
        data = await self._read()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        try:
            await aiofiles.os.makedirs(self._path.parent, exist_ok=True)
            async with aiofiles.open(self._path, "w", encoding="utf-8") as handle:
                await handle.write(json.dumps(data, indent=2))
        except OSError as exc:
            raise BackendFailureError(f"Unable to write {self._path}: {exc}") from exc


__all__ = ["KeyValueStore", "MemoryKeyValueStore", "JsonFileKeyValueStore"]
