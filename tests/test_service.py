"""Tests for the storage service facade."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import pytest

from notestore.config import NotestoreConfig
from notestore.storage import (
    Backend,
    BackendFailureError,
    InvalidFilenameError,
    LocalDocumentProvider,
    MemoryKeyValueStore,
    Note,
    PartialRenameError,
    PermissionDeniedError,
    Platform,
    PreferenceStore,
    StaticFolderPicker,
    StorageService,
)
from notestore.storage.backends import AppStorageBackend
from notestore.storage.preferences import DIRECTORY_PREFERENCE_KEY, USER_PREFERENCES_KEY

AUTHORITY = "com.android.externalstorage.documents"


class HangingStore:
    async def get_item(self, key: str) -> Optional[str]:
        await asyncio.Event().wait()
        return None

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.Event().wait()

    async def remove_item(self, key: str) -> None:
        await asyncio.Event().wait()


class ExplodingPicker:
    async def pick(self) -> Optional[str]:
        raise RuntimeError("activity destroyed")


def _service(
    tmp_path: Path,
    *,
    platform: Platform = Platform.ANDROID,
    store: Optional[MemoryKeyValueStore] = None,
    picker=None,
    provider: Optional[LocalDocumentProvider] = None,
) -> StorageService:
    backing = store if store is not None else MemoryKeyValueStore()
    return StorageService(
        platform=platform,
        app_root=tmp_path / "app" / "Notes",
        preferences=PreferenceStore(backing, timeout=1.0),
        documents=provider or LocalDocumentProvider({"primary": tmp_path}, authority=AUTHORITY),
        web_store=backing,
        folder_picker=picker,
    )


def test_backend_resolution_follows_directory_preference(tmp_path: Path) -> None:
    service = _service(tmp_path)

    async def _scenario() -> None:
        assert await service.initialize() is Backend.APP
        info = await service.get_storage_location_info()
        assert (info.location, info.kind) == ("App Documents Folder", "app")

        await service.set_custom_directory("content://auth/tree/primary:Documents")
        assert await service.resolve_backend() is Backend.CUSTOM
        info = await service.get_storage_location_info()
        assert (info.location, info.kind) == ("Documents", "custom")

        await service.set_custom_directory("")
        assert await service.resolve_backend() is Backend.APP
        info = await service.get_storage_location_info()
        assert (info.location, info.kind) == ("App Documents Folder", "app")

    asyncio.run(_scenario())


def test_web_platform_ignores_directory_preference(tmp_path: Path) -> None:
    store = MemoryKeyValueStore({DIRECTORY_PREFERENCE_KEY: "/sdcard/Notes/"})
    service = _service(tmp_path, platform=Platform.WEB, store=store)

    async def _scenario() -> None:
        assert await service.initialize() is Backend.WEB
        info = await service.get_storage_location_info()
        assert (info.location, info.kind) == ("Browser Local Storage", "app")

        await service.write_note(Note(filename="todo", content="milk"))
        notes = await service.get_all_notes()
        assert [note.filename for note in notes] == ["todo"]
        assert service.get_notes_directory() == "Notes"

    asyncio.run(_scenario())
    assert not (tmp_path / "app").exists()


def test_preference_timeout_falls_back_to_app_storage(tmp_path: Path) -> None:
    service = StorageService(
        platform=Platform.ANDROID,
        app_root=tmp_path / "Notes",
        preferences=PreferenceStore(HangingStore(), timeout=0.01),
    )

    async def _scenario() -> None:
        assert await service.initialize() is Backend.APP
        assert service.get_user_preferences().show_timestamps is True

    asyncio.run(_scenario())


def test_listing_is_cached_until_a_write(tmp_path: Path) -> None:
    service = _service(tmp_path)
    root = tmp_path / "app" / "Notes"

    async def _scenario() -> None:
        await service.initialize()
        await service.write_note(Note(filename="first", content="1"))
        assert [n.filename for n in (await service.list_directory()).notes] == ["first"]

        # Written behind the service's back: still hidden by the cache.
        (root / "sneaky.md").write_text("2", encoding="utf-8")
        assert [n.filename for n in (await service.list_directory()).notes] == ["first"]

        await service.write_note(Note(filename="second", content="3"))
        names = {n.filename for n in (await service.list_directory()).notes}
        assert names == {"first", "second", "sneaky"}

    asyncio.run(_scenario())


def test_read_note_is_cached(tmp_path: Path) -> None:
    service = _service(tmp_path)
    root = tmp_path / "app" / "Notes"

    async def _scenario() -> None:
        await service.initialize()
        await service.write_note(Note(filename="todo", content="v1"))
        assert (await service.read_note("todo")).content == "v1"

        (root / "todo.md").write_text("v2", encoding="utf-8")
        assert (await service.read_note("todo")).content == "v1"

        service.cache.invalidate_all()
        assert (await service.read_note("todo")).content == "v2"

    asyncio.run(_scenario())


def test_rename_removes_previous_note(tmp_path: Path) -> None:
    service = _service(tmp_path)
    root = tmp_path / "app" / "Notes"

    async def _scenario() -> None:
        await service.initialize()
        await service.write_note(Note(filename="draft", content="text"))
        await service.write_note(Note(filename="final", content="text"), "draft")
        # A previous name that never existed is not an error.
        await service.write_note(Note(filename="other", content="x"), "never-existed")

    asyncio.run(_scenario())
    assert not (root / "draft.md").exists()
    assert (root / "final.md").read_text(encoding="utf-8") == "text"
    assert (root / "other.md").exists()


def test_failed_rename_delete_reports_partial_rename(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = _service(tmp_path)
    root = tmp_path / "app" / "Notes"

    async def _refuse_delete(self, filename: str, folder_path: Optional[str] = None) -> None:
        raise BackendFailureError("read-only filesystem")

    async def _scenario() -> PartialRenameError:
        await service.initialize()
        await service.write_note(Note(filename="draft", content="text"))
        await service.list_directory()
        monkeypatch.setattr(AppStorageBackend, "delete_note", _refuse_delete)
        with pytest.raises(PartialRenameError) as excinfo:
            await service.write_note(Note(filename="final", content="text"), "draft")
        return excinfo.value

    error = asyncio.run(_scenario())

    assert error.previous_filename == "draft"
    assert error.note.filename == "final"
    assert (root / "final.md").exists()
    assert (root / "draft.md").exists()
    assert len(service.cache) == 0


def test_delete_note_invalidates_cache(tmp_path: Path) -> None:
    service = _service(tmp_path)

    async def _scenario() -> list[str]:
        await service.initialize()
        await service.write_note(Note(filename="todo"))
        await service.list_directory()
        await service.delete_note("todo")
        return [n.filename for n in (await service.list_directory()).notes]

    assert asyncio.run(_scenario()) == []


def test_navigation_tracks_current_directory(tmp_path: Path) -> None:
    service = _service(tmp_path)

    async def _scenario() -> None:
        await service.initialize()
        root = service.get_notes_directory()
        Path(root, "Work").mkdir(parents=True)
        await service.write_note(Note(filename="plan"), folder_path="Work")

        listing = await service.list_directory()
        work = listing.folders[0].path
        contents = await service.navigate_to_directory(work)
        assert service.get_current_directory() == work
        assert [n.filename for n in contents.notes] == ["plan"]

        parent = await service.navigate_to_parent()
        assert parent is not None
        assert parent.current_path == root
        assert await service.navigate_to_parent() is None

        await service.navigate_to_directory(work)
        back = await service.navigate_to_root()
        assert back.current_path == root
        assert service.get_current_directory() == root

    asyncio.run(_scenario())


def test_select_custom_directory_with_picker(tmp_path: Path) -> None:
    (tmp_path / "Documents").mkdir()
    provider = LocalDocumentProvider({"primary": tmp_path}, authority=AUTHORITY, granted=())
    uri = provider.tree_uri("primary", "Documents")
    store = MemoryKeyValueStore()
    service = _service(
        tmp_path, store=store, picker=StaticFolderPicker(uri, provider), provider=provider
    )

    async def _scenario() -> None:
        await service.initialize()
        assert await service.select_custom_directory() == uri
        assert await service.resolve_backend() is Backend.CUSTOM
        await service.write_note(Note(filename="idea", content="# Idea"))
        notes = await service.get_all_notes()
        assert [n.file_path for n in notes] == [f"{uri}/idea.md"]

    asyncio.run(_scenario())
    assert store.snapshot()[DIRECTORY_PREFERENCE_KEY] == uri
    assert (tmp_path / "Documents" / "idea.md").exists()


@pytest.mark.parametrize(
    ("platform", "picker"),
    [
        (Platform.IOS, StaticFolderPicker("content://auth/tree/primary%3ADocuments")),
        (Platform.ANDROID, StaticFolderPicker(None)),
        (Platform.ANDROID, ExplodingPicker()),
    ],
)
def test_select_custom_directory_without_selection(
    tmp_path: Path, platform: Platform, picker
) -> None:
    store = MemoryKeyValueStore()
    service = _service(tmp_path, platform=platform, store=store, picker=picker)

    async def _scenario() -> None:
        await service.initialize()
        assert await service.select_custom_directory() is None
        assert await service.resolve_backend() is Backend.APP

    asyncio.run(_scenario())
    assert DIRECTORY_PREFERENCE_KEY not in store.snapshot()


def test_public_documents_folder_is_reported(tmp_path: Path) -> None:
    public = tmp_path / "storage" / "Documents" / "Notes"
    service = _service(tmp_path)

    async def _scenario() -> None:
        await service.initialize()
        await service.set_custom_directory(str(public))
        await service.write_note(Note(filename="todo"))
        info = await service.get_storage_location_info()
        assert (info.location, info.kind) == ("Device Documents/Notes", "public")

    asyncio.run(_scenario())
    assert (public / "todo.md").exists()


def test_user_preferences_persist_between_services(tmp_path: Path) -> None:
    store = MemoryKeyValueStore()

    async def _first() -> None:
        service = _service(tmp_path, store=store)
        await service.initialize()
        await service.set_show_timestamps(False)
        await service.set_welcome_completed(True)

    async def _second() -> tuple[bool, bool]:
        service = _service(tmp_path, store=store)
        await service.initialize()
        prefs = service.get_user_preferences()
        return prefs.show_timestamps, prefs.welcome_completed

    asyncio.run(_first())

    assert json.loads(store.snapshot()[USER_PREFERENCES_KEY]) == {
        "showTimestamps": False,
        "welcomeCompleted": True,
    }
    assert asyncio.run(_second()) == (False, True)


def test_from_config_uses_configured_locations(tmp_path: Path) -> None:
    config = NotestoreConfig.model_validate(
        {
            "storage": {
                "app_root": str(tmp_path / "Notes"),
                "state_path": str(tmp_path / "state.json"),
            },
            "documents": {"volumes": {"primary": str(tmp_path)}},
        }
    )
    service = StorageService.from_config(config)

    async def _scenario() -> None:
        await service.initialize()
        await service.set_show_timestamps(False)
        await service.write_note(Note(filename="todo", content="milk"))

    asyncio.run(_scenario())

    assert (tmp_path / "Notes" / "todo.md").read_text(encoding="utf-8") == "milk"
    state = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
    assert json.loads(state[USER_PREFERENCES_KEY])["showTimestamps"] is False


def test_tree_preference_without_document_provider_degrades(tmp_path: Path) -> None:
    tree = "content://auth/tree/primary:Documents"
    service = StorageService(
        platform=Platform.ANDROID,
        app_root=tmp_path / "Notes",
        preferences=PreferenceStore(MemoryKeyValueStore({DIRECTORY_PREFERENCE_KEY: tree})),
    )

    async def _scenario() -> None:
        assert await service.initialize() is Backend.CUSTOM
        assert service.get_notes_directory() == tree

        info = await service.get_storage_location_info()
        assert (info.location, info.kind) == ("Documents", "custom")

        contents = await service.list_directory()
        assert contents.current_path == tree
        assert contents.folders == [] and contents.notes == []
        assert contents.parent_path is None
        assert await service.get_all_notes() == []

        with pytest.raises(PermissionDeniedError):
            await service.read_note("todo")

    asyncio.run(_scenario())


def test_filenames_cannot_leave_the_notes_directory(tmp_path: Path) -> None:
    service = _service(tmp_path)

    async def _scenario() -> None:
        await service.initialize()
        for name in ("../escape", "nested/note", "..", ""):
            with pytest.raises(InvalidFilenameError):
                await service.write_note(Note(filename=name, content="x"))
        with pytest.raises(InvalidFilenameError):
            await service.write_note(Note(filename="ok"), folder_path="../..")

    asyncio.run(_scenario())
    assert not (tmp_path / "app" / "escape.md").exists()
    assert not any(tmp_path.rglob("*.md"))
