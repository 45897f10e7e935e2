"""Tests for the flat key/value backend used on the web platform."""

import asyncio
import json
from datetime import datetime, timezone

import pytest

from notestore.storage import MemoryKeyValueStore, Note, NoteNotFoundError, ParseFailureError
from notestore.storage.backends import KeyValueBackend
from notestore.storage.backends.web import NOTES_KEY


def _entry(filename: str, updated: str, content: str = "") -> dict[str, str]:
    return {
        "filename": filename,
        "content": content,
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": updated,
    }


def test_listing_is_flat_and_sorted_by_update() -> None:
    store = MemoryKeyValueStore(
        {
            NOTES_KEY: json.dumps(
                [
                    _entry("old", "2024-01-02T00:00:00Z"),
                    _entry("new", "2024-03-01T00:00:00Z"),
                ]
            )
        }
    )
    backend = KeyValueBackend(store)

    contents = asyncio.run(backend.list_directory("Notes/Anything"))

    assert contents.folders == []
    assert [note.filename for note in contents.notes] == ["new", "old"]
    assert contents.current_path == "Notes"
    assert contents.parent_path is None
    assert contents.notes[0].file_path == "Notes/new.md"


def test_write_upserts_by_filename_and_stamps_update() -> None:
    store = MemoryKeyValueStore()
    backend = KeyValueBackend(store)
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)

    asyncio.run(backend.write_note(Note(filename="todo", content="v1", created_at=created)))
    saved = asyncio.run(backend.write_note(Note(filename="todo", content="v2", created_at=created)))

    stored = json.loads(store.snapshot()[NOTES_KEY])
    assert len(stored) == 1
    assert stored[0]["content"] == "v2"
    assert set(stored[0]) == {"filename", "content", "createdAt", "updatedAt"}
    assert saved.created_at == created
    assert saved.updated_at > created


def test_read_and_delete() -> None:
    backend = KeyValueBackend(MemoryKeyValueStore())
    asyncio.run(backend.write_note(Note(filename="todo", content="milk")))

    assert asyncio.run(backend.read_note("todo")).content == "milk"

    asyncio.run(backend.delete_note("todo"))

    with pytest.raises(NoteNotFoundError):
        asyncio.run(backend.read_note("todo"))
    with pytest.raises(NoteNotFoundError):
        asyncio.run(backend.delete_note("todo"))


def test_malformed_payload_lists_empty_but_refuses_writes() -> None:
    store = MemoryKeyValueStore({NOTES_KEY: "{broken"})
    backend = KeyValueBackend(store)

    assert asyncio.run(backend.list_directory()).notes == []
    with pytest.raises(ParseFailureError):
        asyncio.run(backend.read_note("todo"))
    with pytest.raises(ParseFailureError):
        asyncio.run(backend.write_note(Note(filename="todo")))
    assert store.snapshot()[NOTES_KEY] == "{broken"


def test_invalid_entries_are_skipped() -> None:
    store = MemoryKeyValueStore(
        {NOTES_KEY: json.dumps([{"filename": "orphan"}, _entry("ok", "2024-01-02T00:00:00Z")])}
    )
    backend = KeyValueBackend(store)

    contents = asyncio.run(backend.list_directory())

    assert [note.filename for note in contents.notes] == ["ok"]
