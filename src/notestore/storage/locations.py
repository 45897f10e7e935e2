"""Translation between storage locators, display labels, and navigation paths.

Two addressing schemes coexist:

* plain filesystem paths, always carried with a trailing ``/`` for directories
  (``/data/Notes/``, ``/data/Notes/Work/``);
* document-tree URIs handed out by the folder picker
  (``content://<authority>/tree/<encoded id>``) with subfolders appended as
  ``/<name>`` segments.

Callers outside the storage layer treat both as opaque strings.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import unquote

from .errors import InvalidFilenameError

LOGGER = logging.getLogger(__name__)

DOCUMENT_SCHEME = "content://"
SEPARATOR = "/"
NOTE_SUFFIX = ".md"

CUSTOM_FOLDER_LABEL = "Custom Folder"
INTERNAL_STORAGE_LABEL = "Internal Storage"
SD_CARD_LABEL = "SD Card"

_TREE_SEGMENT = re.compile(r"/tree/(.+)$")
_FORBIDDEN_FILENAME_CHARS = ("/", "\\", "\x00")
# "content:", "", authority, "tree" precede the document id
_HANDLE_ROOT_SEGMENTS = 4


def is_document_uri(locator: str) -> bool:
    """Return whether ``locator`` is a permission-scoped document-tree URI."""
    return locator.startswith(DOCUMENT_SCHEME)


def human_readable_location(handle: str) -> str:
    """Render a directory handle as a label suitable for display.

    Args:
        handle: Plain path or document-tree URI.

    Returns:
        str: Plain paths unchanged; document-tree URIs translated into labels
        such as ``Documents``, ``Internal Storage`` or ``SD Card/Notes``.
    """
    if not is_document_uri(handle):
        return handle

    try:
        match = _TREE_SEGMENT.search(handle)
        if match is None:
            return CUSTOM_FOLDER_LABEL

        decoded = unquote(match.group(1), errors="strict")
        if decoded.startswith("primary:"):
            return decoded[len("primary:") :] or INTERNAL_STORAGE_LABEL

        if ":" in decoded:
            storage_name, relative_path = decoded.split(":", 1)
            lowered = storage_name.lower()
            if "sd" in lowered or "external" in lowered:
                return f"{SD_CARD_LABEL}/{relative_path}" if relative_path else SD_CARD_LABEL
            if storage_name == "primary":
                return relative_path or INTERNAL_STORAGE_LABEL
            return f"{storage_name}/{relative_path}" if relative_path else storage_name

        return decoded or CUSTOM_FOLDER_LABEL
    except (UnicodeDecodeError, ValueError) as exc:
        LOGGER.warning("Unable to parse document URI %r: %s", handle, exc)
        return CUSTOM_FOLDER_LABEL


def parent_path(current: str, root: str) -> str | None:
    """Return the locator one level above ``current``, bounded by ``root``.

    Args:
        current: Locator of the directory being displayed.
        root: Locator of the active backend root.

    Returns:
        str | None: Parent locator, or ``None`` when ``current`` is the root.
    """
    if current == root:
        return None

    if is_document_uri(current):
        parts = current.split(SEPARATOR)
        if len(parts) > _HANDLE_ROOT_SEGMENTS:
            return SEPARATOR.join(parts[:-1])
        return root

    parts = current.rstrip(SEPARATOR).split(SEPARATOR)
    if len(parts) <= 1:
        return None
    parent = SEPARATOR.join(parts[:-1]) + SEPARATOR
    if len(parent) < len(root):
        return None
    return parent


def join_locator(root: str, folder_path: str | None) -> str:
    """Return the directory locator for ``folder_path`` relative to ``root``."""
    if folder_path is None or not folder_path.strip():
        return root
    folder = folder_path.strip(SEPARATOR)
    if any(segment in (".", "..") for segment in folder.split(SEPARATOR)):
        raise InvalidFilenameError(folder_path)
    if is_document_uri(root):
        return f"{root.rstrip(SEPARATOR)}{SEPARATOR}{folder}"
    return f"{directory_path(root)}{folder}{SEPARATOR}"


def directory_path(locator: str) -> str:
    """Return a plain directory locator with exactly one trailing separator."""
    return locator.rstrip(SEPARATOR) + SEPARATOR


def check_filename(filename: str) -> str:
    """Return ``filename`` unchanged if it names an entry directly inside a directory.

    Raises:
        InvalidFilenameError: If ``filename`` is empty, a dot segment, or holds a separator.
    """
    if filename.strip() in ("", ".", "..") or any(
        char in filename for char in _FORBIDDEN_FILENAME_CHARS
    ):
        raise InvalidFilenameError(filename)
    return filename


def note_locator(directory: str, filename: str) -> str:
    """Return the locator of ``filename`` inside ``directory``."""
    check_filename(filename)
    if is_document_uri(directory):
        return f"{directory.rstrip(SEPARATOR)}{SEPARATOR}{filename}{NOTE_SUFFIX}"
    return f"{directory_path(directory)}{filename}{NOTE_SUFFIX}"


def strip_note_suffix(name: str) -> str:
    """Return ``name`` without its trailing ``.md`` suffix."""
    if name.endswith(NOTE_SUFFIX):
        return name[: -len(NOTE_SUFFIX)]
    return name


__all__ = [
    "CUSTOM_FOLDER_LABEL",
    "DOCUMENT_SCHEME",
    "INTERNAL_STORAGE_LABEL",
    "NOTE_SUFFIX",
    "SD_CARD_LABEL",
    "check_filename",
    "directory_path",
    "human_readable_location",
    "is_document_uri",
    "join_locator",
    "note_locator",
    "parent_path",
    "strip_note_suffix",
]
