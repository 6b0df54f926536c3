from __future__ import annotations

import logging
from typing import Optional

from layered_config.errors import ConfigAlreadyInitializedError, ConfigNotInitializedError
from layered_config.models import AppConfig

logger = logging.getLogger(__name__)


class ConfigRegistry:
    """
    Write-once holder for the resolved configuration.

    Prefer passing the configuration to components explicitly; this exists for code
    paths that cannot receive it through a constructor.
    """

    def __init__(self) -> None:
        self._config: Optional[AppConfig] = None

    @property
    def initialized(self) -> bool:
        return self._config is not None

    def init(self, config: AppConfig) -> None:
        if self._config is not None:
            raise ConfigAlreadyInitializedError("Configuration has already been initialized.")
        self._config = config
        logger.info("Configuration initialized.")

    def get(self) -> AppConfig:
        if self._config is None:
            raise ConfigNotInitializedError("Configuration has not been initialized.")
        return self._config


_default_registry = ConfigRegistry()


def init_config(config: AppConfig) -> None:
    _default_registry.init(config)


def get_config() -> AppConfig:
    return _default_registry.get()
