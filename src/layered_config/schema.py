from __future__ import annotations

import functools
import types
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Literal, Mapping, Optional, Tuple, Type, Union, get_args, get_origin

from pydantic import BaseModel
from pydantic.fields import FieldInfo

from layered_config.models import DEFAULT_ENV_PREFIX, AppConfig

LeafKind = Literal["string", "optional_string", "integer", "duration", "boolean", "list", "enum"]

ENV_SEPARATOR = "_"


@dataclass(frozen=True, slots=True)
class Leaf:
    section: str
    field: str
    kind: LeafKind
    enum_type: Optional[Type[Enum]] = None

    @property
    def path(self) -> str:
        return f"{self.section}.{self.field}"

    @property
    def variants(self) -> Tuple[str, ...]:
        if self.enum_type is None:
            return ()
        return tuple(str(member.value) for member in self.enum_type)


@dataclass(frozen=True, slots=True)
class InstanceCollection:
    """A named list of additional connections, e.g. `database_instances`."""

    name: str
    section: str
    item_model: Type[BaseModel]
    leaves: Mapping[str, Leaf]

    @property
    def env_infix(self) -> str:
        return f"{self.section.upper()}{ENV_SEPARATOR}INSTANCES"


def normalize_prefix(prefix: Optional[str]) -> str:
    if prefix is None:
        return DEFAULT_ENV_PREFIX
    cleaned = prefix.strip().rstrip(ENV_SEPARATOR).upper()
    return cleaned or DEFAULT_ENV_PREFIX


def _unwrap_optional(annotation: object) -> Tuple[object, bool]:
    if get_origin(annotation) in (Union, types.UnionType):
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1 and len(get_args(annotation)) == 2:
            return args[0], True
    return annotation, False


def _is_model(annotation: object) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def _leaf_kind(path: str, info: FieldInfo) -> Tuple[LeafKind, Optional[Type[Enum]]]:
    extra = info.json_schema_extra
    if isinstance(extra, dict) and "kind" in extra:
        return extra["kind"], None  # type: ignore[return-value]

    annotation, optional = _unwrap_optional(info.annotation)
    if optional and annotation is not str:
        raise TypeError(f"Only string fields may be optional: {path}")

    if annotation is bool:
        return "boolean", None
    if annotation is int:
        return "integer", None
    if annotation is str:
        return ("optional_string" if optional else "string"), None
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return "enum", annotation
    if get_origin(annotation) in (tuple, list) and get_args(annotation)[:1] == (str,):
        return "list", None
    raise TypeError(f"Unsupported configuration field type for {path}: {annotation!r}")


def _section_leaves(section: str, model: Type[BaseModel]) -> Dict[str, Leaf]:
    leaves: Dict[str, Leaf] = {}
    for field_name, info in model.model_fields.items():
        kind, enum_type = _leaf_kind(f"{section}.{field_name}", info)
        leaves[field_name] = Leaf(section=section, field=field_name, kind=kind, enum_type=enum_type)
    return leaves


def _collection_section(name: str, item_model: Type[BaseModel]) -> Tuple[str, Type[BaseModel]]:
    candidates = [
        (field_name, info.annotation)
        for field_name, info in item_model.model_fields.items()
        if field_name != "name" and _is_model(info.annotation)
    ]
    if "name" not in item_model.model_fields or len(candidates) != 1:
        raise TypeError(f"Instance list '{name}' items must have a name and exactly one section")
    return candidates[0]  # type: ignore[return-value]


class ConfigSchema:
    """
    Declarative view of a configuration model.

    Maps every dotted leaf path (`section.field`) to its kind and to its environment
    variable name `<PREFIX>_<SECTION>_<FIELD>`. The mapping is checked to be injective
    when the schema is built.
    """

    def __init__(self, model: Type[BaseModel]) -> None:
        self.model = model
        self.sections: Dict[str, Dict[str, Leaf]] = {}
        self.collections: Dict[str, InstanceCollection] = {}

        for name, info in model.model_fields.items():
            annotation = info.annotation
            if _is_model(annotation):
                self.sections[name] = _section_leaves(name, annotation)  # type: ignore[arg-type]
                continue
            args = get_args(annotation)
            if get_origin(annotation) is tuple and args and _is_model(args[0]):
                section, section_model = _collection_section(name, args[0])
                self.collections[name] = InstanceCollection(
                    name=name,
                    section=section,
                    item_model=args[0],
                    leaves=_section_leaves(section, section_model),
                )
                continue
            raise TypeError(f"Top-level configuration field '{name}' must be a section or an instance list")

        # Longest section names first so that `cache_cluster` wins over `cache`.
        self._env_sections = sorted(self.sections, key=len, reverse=True)
        self._env_fields: Dict[str, Dict[str, Leaf]] = {
            section: {field.upper(): leaf for field, leaf in leaves.items()}
            for section, leaves in self.sections.items()
        }
        self._check_env_keys_unique()

    def _check_env_keys_unique(self) -> None:
        seen: Dict[str, str] = {}
        for leaf in self.leaves():
            suffix = env_suffix(leaf.section, leaf.field)
            if suffix in seen:
                raise ValueError(
                    f"Environment variable suffix {suffix} is shared by '{seen[suffix]}' and '{leaf.path}'"
                )
            seen[suffix] = leaf.path

    def leaves(self) -> Iterator[Leaf]:
        for leaves in self.sections.values():
            yield from leaves.values()

    def leaf(self, path: str) -> Optional[Leaf]:
        section, _, field = path.partition(".")
        return self.sections.get(section, {}).get(field)

    def env_key(self, path: str, prefix: Optional[str] = None) -> str:
        leaf = self.leaf(path)
        if leaf is None:
            raise KeyError(f"Unknown configuration key path: {path}")
        return f"{normalize_prefix(prefix)}{ENV_SEPARATOR}{env_suffix(leaf.section, leaf.field)}"

    def env_keys(self, prefix: Optional[str] = None) -> Dict[str, str]:
        return {leaf.path: self.env_key(leaf.path, prefix) for leaf in self.leaves()}

    def resolve_env_suffix(self, suffix: str) -> Optional[Leaf]:
        """Map `JWT_JWT_SECRET` back to the `jwt.jwt_secret` leaf, or None."""
        for section in self._env_sections:
            head = section.upper() + ENV_SEPARATOR
            if not suffix.startswith(head):
                continue
            leaf = self._env_fields[section].get(suffix[len(head):])
            if leaf is not None:
                return leaf
        return None


def env_suffix(section: str, field: str) -> str:
    return f"{section}{ENV_SEPARATOR}{field}".upper()


@functools.lru_cache(maxsize=None)
def schema_for(model: Type[BaseModel] = AppConfig) -> ConfigSchema:
    return ConfigSchema(model)
