"""Layered configuration merging."""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from typing import Any, Optional

from pydantic import ValidationError

from .exceptions import ConfigError
from .models import NotestoreConfig

ENV_PREFIX = "NOTESTORE__"


def resolve_with_precedence(
    *,
    defaults: NotestoreConfig,
    file_overrides: Optional[Mapping[str, Any]] = None,
    env_overrides: Optional[Mapping[str, Any]] = None,
    cli_overrides: Optional[Mapping[str, Any]] = None,
) -> NotestoreConfig:
    """Apply the file, environment and command-line layers over ``defaults``.

    Each layer may mix nested sections with dotted keys such as
    ``"storage.platform"``. Later layers win.

    Raises:
        ConfigError: If a layer is malformed or the merged values fail validation.
    """
    merged = defaults.model_dump(mode="python")
    for source, layer in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if layer:
            _merge_into(merged, expand_dotted(layer, source=source))

    try:
        return NotestoreConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def expand_dotted(layer: Mapping[str, Any], *, source: str) -> dict[str, Any]:
    """Return ``layer`` as nested sections, splitting dotted keys."""
    if not isinstance(layer, Mapping):
        raise ConfigError(f"{source} settings must be a mapping, got {type(layer).__name__}.")
    tree: dict[str, Any] = {}
    for key, value in layer.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source} setting names must be strings, got {key!r}.")
        if isinstance(value, Mapping):
            value = expand_dotted(value, source=source)
        assign_nested(tree, key.split("."), value, source=source)
    return tree


def assign_nested(
    target: dict[str, Any],
    path: list[str],
    value: Any,
    *,
    source: str = "config",
) -> None:
    """Store ``value`` at ``path`` inside ``target``, creating sections on the way.

    Raises:
        ConfigError: If a segment along ``path`` already holds a plain value.
    """
    *sections, leaf = path
    node = target
    for name in sections:
        child = node.setdefault(name, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"Cannot set {'.'.join(path)} from {source}: {name!r} is not a section."
            )
        node = child
    if isinstance(value, Mapping) and isinstance(node.get(leaf), dict):
        _merge_into(node[leaf], value)
    else:
        node[leaf] = value


def _merge_into(base: dict[str, Any], overlay: Mapping[str, Any]) -> None:
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge_into(base[key], value)
        else:
            base[key] = deepcopy(value)


__all__ = ["ENV_PREFIX", "assign_nested", "expand_dotted", "resolve_with_precedence"]
