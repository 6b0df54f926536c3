from __future__ import annotations

from typing import Any


class ConfigError(Exception):
    """Base class for every configuration resolution failure."""


class ConfigParseError(ConfigError):
    """The configuration file exists but could not be read or parsed."""

    def __init__(self, path: str, cause: str) -> None:
        super().__init__(f"Failed to parse config file {path}: {cause}")
        self.path = path
        self.cause = cause


class UnsupportedConfigFormatError(ConfigError):
    def __init__(self, path: str, extension: str) -> None:
        super().__init__(f"Unsupported config file format: {extension or '<none>'} ({path})")
        self.path = path
        self.extension = extension


class ConfigTypeError(ConfigError):
    """A raw value could not be coerced into the declared type of its field."""

    def __init__(self, path: str, raw_value: Any, expected: str) -> None:
        super().__init__(f"Invalid value for '{path}': {raw_value!r} (expected {expected})")
        self.path = path
        self.raw_value = raw_value
        self.expected = expected


class ConfigAlreadyInitializedError(ConfigError):
    pass


class ConfigNotInitializedError(ConfigError):
    pass
