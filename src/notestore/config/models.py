"""Configuration models describing notestore settings."""

from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DOCUMENT_AUTHORITY = "com.android.externalstorage.documents"


class NotestoreBaseModel(BaseModel):
    """Shared configuration for notestore settings models."""

    model_config = ConfigDict(extra="forbid")


class StorageSettings(NotestoreBaseModel):
    """Options that shape the storage service.

    Attributes:
        platform: Platform the service runs on; ``web`` always uses the key/value backend.
        app_root: App-private directory holding notes when no external folder is chosen.
        state_path: JSON file backing the key/value store for preferences and web notes.
        cache_ttl_seconds: Validity window of the listing and note caches.
        preview_length: Number of leading characters kept in note previews.
        preference_timeout_seconds: Deadline applied to every preference-store call.
    """

    platform: Literal["android", "ios", "web"] = "android"
    app_root: str = "~/.notestore/Notes/"
    state_path: str = "~/.notestore/state.json"
    cache_ttl_seconds: float = 300.0
    preview_length: int = 200
    preference_timeout_seconds: float = 5.0


class DocumentSettings(NotestoreBaseModel):
    """Mapping between document-tree URIs and local storage volumes.

    Attributes:
        authority: Authority component expected in ``content://`` tree URIs.
        volumes: Storage ids (``primary``, SD card ids) mapped to local mount directories.
    """

    authority: str = DEFAULT_DOCUMENT_AUTHORITY
    volumes: Dict[str, str] = Field(default_factory=lambda: {"primary": "~"})


class LoggingSettings(NotestoreBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional path of a rotating log file.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 3


class CLIOptions(NotestoreBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
    """

    quiet_default: bool = False


class NotestoreConfig(NotestoreBaseModel):
    """Top-level configuration struct for notestore.

    Attributes:
        storage: Storage service settings.
        documents: Document-tree volume settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    storage: StorageSettings = Field(default_factory=StorageSettings)
    documents: DocumentSettings = Field(default_factory=DocumentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "DEFAULT_DOCUMENT_AUTHORITY",
    "NotestoreBaseModel",
    "StorageSettings",
    "DocumentSettings",
    "LoggingSettings",
    "CLIOptions",
    "NotestoreConfig",
]
