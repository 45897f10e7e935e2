"""Configuration management for notestore."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .exceptions import ConfigError
from .models import NotestoreConfig
from .resolver import ENV_PREFIX, assign_nested, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.notestore/config.yaml")
_HEADER = (
    "# notestore configuration file\n"
    "# Edit by hand or run `notestore config set SECTION.KEY --value VALUE`.\n"
)


class ConfigManager:
    """Read and write the YAML settings file and resolve effective settings.

    Args:
        config_path: Location of the YAML file; defaults to ``~/.notestore/config.yaml``.
        env: Environment consulted for ``NOTESTORE__SECTION__KEY`` overrides.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = os.environ if env is None else env

    def load(
        self,
        *,
        cli_overrides: Optional[Mapping[str, Any]] = None,
        include_env: bool = True,
    ) -> NotestoreConfig:
        """Return the effective settings, writing a default file on first use."""
        self.ensure_exists()
        return resolve_with_precedence(
            defaults=NotestoreConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=env_overrides(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw sections stored in the settings file.

        Raises:
            ConfigError: If the file is not YAML or not a mapping.
        """
        text = self.read_text()
        try:
            data = yaml.safe_load(text) if text else None
        except yaml.YAMLError as exc:
            raise ConfigError(f"{self.config_path} is not valid YAML: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_path} must contain a mapping of sections.")
        return data

    def save(self, data: Mapping[str, Any]) -> None:
        """Overwrite the settings file with ``data``."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self.config_path.write_text(f"{_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8")

    def ensure_exists(self) -> Path:
        """Write the default settings if the file is missing."""
        if not self.config_path.exists():
            self.save(NotestoreConfig().model_dump(mode="python"))
        return self.config_path

    def read_text(self) -> str:
        if not self.config_path.exists():
            return ""
        return self.config_path.read_text(encoding="utf-8")


def parse_value(raw: str) -> Any:
    """Interpret ``raw`` as YAML, keeping the plain string when it does not parse."""
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``NOTESTORE__SECTION__KEY`` variables as nested overrides."""
    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        path = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if path:
            assign_nested(overrides, path, parse_value(raw), source="environment")
    return overrides


__all__ = [
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "NotestoreConfig",
    "env_overrides",
    "parse_value",
    "resolve_with_precedence",
]
