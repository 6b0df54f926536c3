from __future__ import annotations

import re
from typing import Any, Optional, Tuple

from layered_config.errors import ConfigTypeError
from layered_config.schema import Leaf

_DIGITS = re.compile(r"[0-9]+")
_TRUE = frozenset({"true", "1"})
_FALSE = frozenset({"false", "0"})


def _coerce_integer(path: str, raw: Any) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        if raw < 0:
            raise ConfigTypeError(path, raw, "integer")
        return raw
    if isinstance(raw, str) and _DIGITS.fullmatch(raw.strip()):
        return int(raw.strip())
    raise ConfigTypeError(path, raw, "integer")


def _coerce_boolean(path: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ConfigTypeError(path, raw, "boolean")


def _coerce_string(path: str, raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, bool):
        return "true" if raw else "false"
    # YAML turns `port: 8080`-like values into numbers even for string fields.
    if isinstance(raw, (int, float)):
        return str(raw)
    raise ConfigTypeError(path, raw, "string")


def _coerce_list(path: str, raw: Any) -> Tuple[str, ...]:
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = [_coerce_string(path, item) for item in raw]
    else:
        raise ConfigTypeError(path, raw, "list of strings")
    return tuple(item.strip() for item in items if item.strip())


def _coerce_enum(leaf: Leaf, path: str, raw: Any) -> Any:
    if leaf.enum_type is None:
        raise TypeError(f"Enum field {leaf.path} has no enum type")
    if isinstance(raw, leaf.enum_type):
        return raw
    if isinstance(raw, str):
        wanted = raw.strip().lower()
        for member in leaf.enum_type:
            if str(member.value).lower() == wanted:
                return member
    raise ConfigTypeError(path, raw, f"one of {{{', '.join(leaf.variants)}}}")


def coerce(leaf: Leaf, raw: Any, *, path: Optional[str] = None) -> Any:
    """
    Convert a raw overlay value into the declared type of `leaf`.

    `path` overrides the reported location, e.g. for items of instance lists.
    Raises ConfigTypeError when the value cannot be converted.
    """
    where = path or leaf.path
    kind = leaf.kind
    if kind in ("integer", "duration"):
        return _coerce_integer(where, raw)
    if kind == "boolean":
        return _coerce_boolean(where, raw)
    if kind == "list":
        return _coerce_list(where, raw)
    if kind == "enum":
        return _coerce_enum(leaf, where, raw)
    if kind == "optional_string":
        if raw is None or raw == "":
            return None
        return _coerce_string(where, raw)
    return _coerce_string(where, raw)
