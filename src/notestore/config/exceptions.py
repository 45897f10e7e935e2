"""Exceptions raised by the configuration layer."""


class ConfigError(Exception):
    """Raised when notestore settings cannot be read, merged, or validated."""
