from __future__ import annotations

import json
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values

from layered_config.errors import ConfigParseError, ConfigTypeError, UnsupportedConfigFormatError
from layered_config.schema import ENV_SEPARATOR, ConfigSchema, normalize_prefix

logger = logging.getLogger(__name__)

# Dotted schema path -> raw value, as read from one source.
RawOverlay = Dict[str, Any]

_PARSE_ERRORS = (yaml.YAMLError, tomllib.TOMLDecodeError, json.JSONDecodeError, UnicodeDecodeError)


def _parse_document(path: Path, text: str) -> Any:
    extension = path.suffix.lower().lstrip(".")
    if extension in ("yaml", "yml"):
        return yaml.safe_load(text)
    if extension == "toml":
        return tomllib.loads(text)
    if extension == "json":
        return json.loads(text)
    raise UnsupportedConfigFormatError(str(path), extension)


def read_config_document(file_path: Optional[str]) -> Dict[str, Any]:
    """
    Read and parse the configuration file.

    A missing path or a missing file yields an empty document; configuration files
    are optional. The format follows the extension: .yaml/.yml, .toml or .json.
    """
    if not file_path:
        return {}
    path = Path(file_path)
    if not path.exists():
        logger.info("Config file not found, using defaults and environment only. path=%s", path)
        return {}

    logger.info("Loading config from file. path=%s", path)
    try:
        data = _parse_document(path, path.read_text(encoding="utf-8"))
    except (*_PARSE_ERRORS, OSError) as e:
        raise ConfigParseError(str(path), str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(str(path), f"top-level document must be a mapping, got: {type(data).__name__}")
    return data


def flatten_document(document: Mapping[str, Any], schema: ConfigSchema) -> RawOverlay:
    """Flatten known `section.field` keys of a parsed document; unknown keys are ignored."""
    overlay: RawOverlay = {}
    for section, values in document.items():
        leaves = schema.sections.get(section)
        if leaves is None:
            if section not in schema.collections:
                logger.debug("Ignoring unknown config section. section=%s", section)
            continue
        if values is None:
            continue
        if not isinstance(values, Mapping):
            raise ConfigTypeError(section, values, "mapping")
        for field, raw in values.items():
            leaf = leaves.get(field)
            if leaf is None:
                logger.debug("Ignoring unknown config key. path=%s.%s", section, field)
                continue
            overlay[leaf.path] = raw
    return overlay


def environment_snapshot(
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> Dict[str, str]:
    """
    Copy the environment, with values from a .env file underneath it.

    Variables already present in the environment win over the .env file.
    `os.environ` is never modified.
    """
    snapshot: Dict[str, str] = {}
    if dotenv_path is not None and Path(dotenv_path).exists():
        logger.info("Loading environment file. path=%s", dotenv_path)
        for name, value in dotenv_values(dotenv_path).items():
            if value is not None:
                snapshot[name] = value
    snapshot.update(os.environ if environ is None else environ)
    return snapshot


def load_env_overlay(environ: Mapping[str, str], prefix: Optional[str], schema: ConfigSchema) -> RawOverlay:
    head = normalize_prefix(prefix) + ENV_SEPARATOR
    overlay: RawOverlay = {}
    for name, value in environ.items():
        if not name.startswith(head):
            continue
        leaf = schema.resolve_env_suffix(name[len(head):])
        if leaf is None:
            continue
        overlay[leaf.path] = value
    logger.debug("Environment overrides resolved. prefix=%s count=%s", head, len(overlay))
    return overlay
