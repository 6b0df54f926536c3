"""Layered configuration: defaults, then a config file, then prefixed environment variables."""

from layered_config.errors import (
    ConfigAlreadyInitializedError,
    ConfigError,
    ConfigNotInitializedError,
    ConfigParseError,
    ConfigTypeError,
    UnsupportedConfigFormatError,
)
from layered_config.models import AppConfig, ConfigLoadRequest, RedisMode, default_config
from layered_config.registry import ConfigRegistry, get_config, init_config
from layered_config.resolver import (
    LayeredConfigLoader,
    resolve_config,
    resolve_env_only,
    resolve_file_only,
    resolve_with_custom_prefix,
    resolve_with_env,
)
from layered_config.schema import ConfigSchema, schema_for

__all__ = [
    "AppConfig",
    "ConfigAlreadyInitializedError",
    "ConfigError",
    "ConfigLoadRequest",
    "ConfigNotInitializedError",
    "ConfigParseError",
    "ConfigRegistry",
    "ConfigSchema",
    "ConfigTypeError",
    "LayeredConfigLoader",
    "RedisMode",
    "UnsupportedConfigFormatError",
    "default_config",
    "get_config",
    "init_config",
    "resolve_config",
    "resolve_env_only",
    "resolve_file_only",
    "resolve_with_custom_prefix",
    "resolve_with_env",
    "schema_for",
]
