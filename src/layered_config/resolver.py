from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel

from layered_config.coercion import coerce
from layered_config.instances import instances_from_document, instances_from_env, merge_instances
from layered_config.models import AppConfig, ConfigLoadRequest
from layered_config.schema import ConfigSchema, normalize_prefix, schema_for
from layered_config.sources import (
    RawOverlay,
    environment_snapshot,
    flatten_document,
    load_env_overlay,
    read_config_document,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _apply_overlay(sections: Dict[str, Dict[str, Any]], overlay: RawOverlay, schema: ConfigSchema) -> None:
    for path, raw in overlay.items():
        leaf = schema.leaf(path)
        if leaf is None:
            continue
        sections[leaf.section][leaf.field] = coerce(leaf, raw)


def resolve_config(
    *,
    file_path: Optional[str] = None,
    env_prefix: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
    use_file: bool = True,
    use_env: bool = True,
    model: Type[M] = AppConfig,  # type: ignore[assignment]
) -> M:
    """
    Merge defaults, the file overlay and the environment overlay into one model.

    Later stages only replace the fields they contain. The first value that cannot
    be coerced aborts resolution with ConfigTypeError; a malformed file raises
    ConfigParseError.
    """
    schema = schema_for(model)
    defaults = model()
    sections: Dict[str, Dict[str, Any]] = {
        name: getattr(defaults, name).model_dump() for name in schema.sections
    }
    instances: Dict[str, List[BaseModel]] = {
        name: list(getattr(defaults, name)) for name in schema.collections
    }

    if use_file:
        document = read_config_document(file_path)
        _apply_overlay(sections, flatten_document(document, schema), schema)
        instances.update(instances_from_document(document, schema))

    if use_env:
        prefix = normalize_prefix(env_prefix)
        logger.info("Loading config from environment variables. prefix=%s", prefix)
        snapshot = environment_snapshot(environ, dotenv_path)
        _apply_overlay(sections, load_env_overlay(snapshot, prefix, schema), schema)
        for name, overrides in instances_from_env(snapshot, prefix, schema).items():
            instances[name] = list(merge_instances(name, instances[name], overrides))

    data: Dict[str, Any] = dict(sections)
    data.update({name: tuple(items) for name, items in instances.items()})
    return model.model_validate(data)


def resolve_with_env(
    file_path: Optional[str] = None,
    env_prefix: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> AppConfig:
    """Defaults, then the file, then environment variables (the recommended mode)."""
    logger.info("Resolving configuration with environment overrides. file=%s", file_path)
    return resolve_config(file_path=file_path, env_prefix=env_prefix, environ=environ, dotenv_path=dotenv_path)


def resolve_env_only(
    env_prefix: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> AppConfig:
    logger.info("Resolving configuration from environment variables only.")
    return resolve_config(env_prefix=env_prefix, environ=environ, dotenv_path=dotenv_path, use_file=False)


def resolve_with_custom_prefix(
    file_path: Optional[str],
    env_prefix: str,
    *,
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> AppConfig:
    return resolve_with_env(file_path, env_prefix, environ=environ, dotenv_path=dotenv_path)


def resolve_file_only(file_path: Optional[str]) -> AppConfig:
    logger.info("Resolving configuration from file only. file=%s", file_path)
    return resolve_config(file_path=file_path, use_env=False)


class LayeredConfigLoader:
    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    async def load(self, request: ConfigLoadRequest = ConfigLoadRequest()) -> AppConfig:
        if request.mode == "env_only":
            return resolve_env_only(request.env_prefix, environ=self._environ, dotenv_path=request.dotenv_path)
        if request.mode == "file_only":
            return resolve_file_only(request.file_path)
        return resolve_with_custom_prefix(
            request.file_path,
            request.env_prefix,
            environ=self._environ,
            dotenv_path=request.dotenv_path,
        )
