"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from notestore.config import (
    ConfigError,
    ConfigManager,
    NotestoreConfig,
    env_overrides,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, **kwargs) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager(**kwargs)


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".notestore" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "notestore configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, NotestoreConfig)
    assert config.storage.platform == "android"


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env = {
        "NOTESTORE__STORAGE__CACHE_TTL_SECONDS": "30",
        "NOTESTORE__STORAGE__PLATFORM": "ios",
        "UNRELATED": "ignored",
    }
    manager = _fresh_manager(tmp_path, monkeypatch, env=env)
    manager.save({"storage": {"platform": "web", "preview_length": 80}})

    config = manager.load(cli_overrides={"storage.cache_ttl_seconds": 5})

    assert config.storage.preview_length == 80
    # Environment wins over the file, CLI over the environment.
    assert config.storage.platform == "ios"
    assert config.storage.cache_ttl_seconds == pytest.approx(5)


def test_environment_can_be_skipped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(
        tmp_path, monkeypatch, env={"NOTESTORE__LOGGING__LEVEL": "DEBUG"}
    )

    assert manager.load(include_env=False).logging.level == "WARNING"
    assert manager.load().logging.level == "DEBUG"


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=NotestoreConfig(),
            file_overrides={"storage": {"colour": "blue"}},
        )


def test_env_overrides_parse_yaml_scalars() -> None:
    overrides = env_overrides(
        {
            "NOTESTORE__STORAGE__PREVIEW_LENGTH": "80",
            "NOTESTORE__CLI__QUIET_DEFAULT": "true",
            "NOTESTORE__LOGGING__FILE": "~/notes.log",
            "HOME": "/home/someone",
        }
    )

    assert overrides == {
        "storage": {"preview_length": 80},
        "cli": {"quiet_default": True},
        "logging": {"file": "~/notes.log"},
    }


def test_dotted_and_nested_keys_merge_into_sections() -> None:
    config = resolve_with_precedence(
        defaults=NotestoreConfig(),
        file_overrides={"storage": {"platform": "ios"}, "storage.preview_length": 32},
        cli_overrides={"documents.volumes": {"sdcard": "/mnt/sd"}},
    )

    assert config.storage.platform == "ios"
    assert config.storage.preview_length == 32
    assert config.documents.volumes == {"primary": "~", "sdcard": "/mnt/sd"}


def test_override_through_a_plain_value_is_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=NotestoreConfig(),
            cli_overrides={"storage.platform.name": "web"},
        )


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=NotestoreConfig(),
            file_overrides={"storage": {"platform": "windows"}},
        )
