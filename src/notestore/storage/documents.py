"""Permission-scoped document-tree primitives.

A user-granted external folder is addressed only through document-tree URIs
of the form ``content://<authority>/tree/<encoded storage:path>``. Entries
inside the tree are addressed by appending raw ``/<name>`` segments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from stat import S_ISDIR
from typing import Iterable, List, Literal, Mapping, Optional, Protocol
from urllib.parse import quote, unquote

import aiofiles
import aiofiles.os

from notestore.config.models import DEFAULT_DOCUMENT_AUTHORITY

from .errors import BackendFailureError, NoteNotFoundError, PermissionDeniedError
from .locations import DOCUMENT_SCHEME, SEPARATOR
from .models import from_timestamp

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class DocumentFile:
    """Entry returned by a document provider.

    Attributes:
        name: Display name of the entry, including any extension.
        uri: Document URI addressing the entry.
        type: Whether the entry is a file or a directory.
        last_modified: Modification time of the entry.
    """

    name: str
    uri: str
    type: Literal["file", "directory"]
    last_modified: datetime


class DocumentProvider(Protocol):
    """Operations available on a granted document tree."""

    async def list_files(self, uri: str) -> List[DocumentFile]: ...

    async def read_file(self, uri: str) -> str: ...

    async def write_file(self, uri: str, content: str) -> None: ...

    async def unlink(self, uri: str) -> None: ...

    async def stat(self, uri: str) -> DocumentFile: ...


class FolderPicker(Protocol):
    """External folder chooser returning a granted tree URI, or ``None`` on cancel."""

    async def pick(self) -> Optional[str]: ...


class StaticFolderPicker:
    """Folder picker that always yields a preselected tree URI."""

    def __init__(self, uri: Optional[str], provider: LocalDocumentProvider | None = None) -> None:
        self._uri = uri
        self._provider = provider

    async def pick(self) -> Optional[str]:
        if self._uri and self._provider is not None:
            self._provider.grant(self._uri)
        return self._uri


class LocalDocumentProvider:
    """Document provider serving tree URIs from locally mounted storage volumes.

    Args:
        volumes: Storage ids (``primary``, SD card ids) mapped to mount directories.
        authority: Authority expected in tree URIs.
        granted: Tree URIs the caller holds a grant for. ``None`` grants every
            tree located on a configured volume.
    """

    def __init__(
        self,
        volumes: Mapping[str, Path],
        *,
        authority: str = DEFAULT_DOCUMENT_AUTHORITY,
        granted: Iterable[str] | None = None,
    ) -> None:
        self._volumes = {name: Path(path).expanduser() for name, path in volumes.items()}
        self._authority = authority
        self._granted: set[str] | None = set(granted) if granted is not None else None
        self._revoked: set[str] = set()

    @property
    def authority(self) -> str:
        return self._authority

    def tree_uri(self, volume: str, relative: str = "") -> str:
        """Return the tree URI for ``relative`` inside ``volume``."""
        document_id = quote(f"{volume}:{relative.strip(SEPARATOR)}", safe="")
        return f"{DOCUMENT_SCHEME}{self._authority}/tree/{document_id}"

    def grant(self, tree_uri: str) -> None:
        """Record a persistent grant for ``tree_uri``."""
        self._revoked.discard(tree_uri)
        if self._granted is not None:
            self._granted.add(tree_uri)

    def revoke(self, tree_uri: str) -> None:
        """Drop the grant for ``tree_uri``."""
        self._revoked.add(tree_uri)
        if self._granted is not None:
            self._granted.discard(tree_uri)

    # ------------------------------------------------------------------ #
    # DocumentProvider                                                   #
    # ------------------------------------------------------------------ #

    async def list_files(self, uri: str) -> List[DocumentFile]:
        directory = self._resolve(uri)
        if not await aiofiles.os.path.isdir(directory):
            raise BackendFailureError(f"{uri} is not a directory")
        base = uri.rstrip(SEPARATOR)
        try:
            names = sorted(await aiofiles.os.listdir(directory))
        except OSError as exc:
            raise BackendFailureError(f"Unable to list {uri}: {exc}") from exc
        entries: List[DocumentFile] = []
        for name in names:
            try:
                entries.append(await self._describe(directory / name, f"{base}{SEPARATOR}{name}"))
            except OSError as exc:
                LOGGER.debug("Skipping %s in %s: %s", name, uri, exc)
        return entries

    async def read_file(self, uri: str) -> str:
        path = self._resolve(uri)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as handle:
                return await handle.read()
        except FileNotFoundError as exc:
            raise NoteNotFoundError(path.stem, uri) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise BackendFailureError(f"Unable to read {uri}: {exc}") from exc

    async def write_file(self, uri: str, content: str) -> None:
        path = self._resolve(uri)
        if not await aiofiles.os.path.isdir(path.parent):
            raise BackendFailureError(f"Parent directory of {uri} does not exist")
        try:
            async with aiofiles.open(path, "w", encoding="utf-8") as handle:
                await handle.write(content)
        except OSError as exc:
            raise BackendFailureError(f"Unable to write {uri}: {exc}") from exc

    async def unlink(self, uri: str) -> None:
        path = self._resolve(uri)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError as exc:
            raise NoteNotFoundError(path.stem, uri) from exc
        except OSError as exc:
            raise BackendFailureError(f"Unable to delete {uri}: {exc}") from exc

    async def stat(self, uri: str) -> DocumentFile:
        path = self._resolve(uri)
        try:
            return await self._describe(path, uri)
        except FileNotFoundError as exc:
            raise NoteNotFoundError(path.stem, uri) from exc
        except OSError as exc:
            raise BackendFailureError(f"Unable to stat {uri}: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    async def _describe(self, path: Path, uri: str) -> DocumentFile:
        info = await aiofiles.os.stat(path)
        kind: Literal["file", "directory"] = "directory" if S_ISDIR(info.st_mode) else "file"
        return DocumentFile(
            name=path.name,
            uri=uri,
            type=kind,
            last_modified=from_timestamp(info.st_mtime),
        )

    def _resolve(self, uri: str) -> Path:
        prefix = f"{DOCUMENT_SCHEME}{self._authority}/tree/"
        if not uri.startswith(prefix):
            raise PermissionDeniedError(f"{uri} is not a tree URI of {self._authority}")

        tree_segment, _, remainder = uri[len(prefix) :].partition(SEPARATOR)
        tree_uri = prefix + tree_segment
        if tree_uri in self._revoked or (
            self._granted is not None and tree_uri not in self._granted
        ):
            raise PermissionDeniedError(f"No permission granted for {tree_uri}")

        document_id = unquote(tree_segment)
        volume, separator, relative = document_id.partition(":")
        if not separator or volume not in self._volumes:
            raise PermissionDeniedError(f"Unknown storage volume in {tree_uri}")

        segments = [segment for segment in remainder.split(SEPARATOR) if segment]
        segments = [segment for segment in relative.split(SEPARATOR) if segment] + segments
        if any(segment in (".", "..") for segment in segments):
            raise PermissionDeniedError(f"{uri} escapes its document tree")

        return self._volumes[volume].joinpath(*segments)


__all__ = [
    "DocumentFile",
    "DocumentProvider",
    "FolderPicker",
    "LocalDocumentProvider",
    "StaticFolderPicker",
]
