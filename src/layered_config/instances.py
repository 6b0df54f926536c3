from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from layered_config.coercion import coerce
from layered_config.errors import ConfigTypeError
from layered_config.schema import ENV_SEPARATOR, ConfigSchema, InstanceCollection, Leaf, normalize_prefix

logger = logging.getLogger(__name__)

InstanceLists = Dict[str, List[BaseModel]]

# Fields an environment instance must set besides NAME; reading stops at the first
# index missing any of them.
_REQUIRED_ENV_FIELDS: Dict[str, Tuple[str, ...]] = {
    "database": ("url",),
    "redis": ("mode",),
    "mongo": ("uri",),
    "s3": ("region", "access_key_id", "secret_access_key"),
}


def _build_item(collection: InstanceCollection, name: Any, values: Mapping[str, Any], where: str) -> BaseModel:
    name_leaf = Leaf(section=where, field="name", kind="string")
    item_name = coerce(name_leaf, name)
    if not item_name:
        raise ConfigTypeError(name_leaf.path, name, "non-empty string")

    fields: Dict[str, Any] = {}
    for field, raw in values.items():
        leaf = collection.leaves.get(field)
        if leaf is None:
            continue
        fields[field] = coerce(leaf, raw, path=f"{where}.{collection.section}.{field}")
    return collection.item_model.model_validate({"name": item_name, collection.section: fields})


def instances_from_document(document: Mapping[str, Any], schema: ConfigSchema) -> InstanceLists:
    """
    Read named instance lists from a parsed file, e.g.

        redis_instances:
          - name: cache
            redis: {mode: cluster, urls: [...]}
    """
    result: InstanceLists = {}
    for name, collection in schema.collections.items():
        raw_items = document.get(name)
        if raw_items is None:
            continue
        if not isinstance(raw_items, list):
            raise ConfigTypeError(name, raw_items, "list")

        items: List[BaseModel] = []
        for index, item in enumerate(raw_items):
            where = f"{name}.{index}"
            if not isinstance(item, Mapping):
                raise ConfigTypeError(where, item, "mapping")
            values = item.get(collection.section) or {}
            if not isinstance(values, Mapping):
                raise ConfigTypeError(f"{where}.{collection.section}", values, "mapping")
            items.append(_build_item(collection, item.get("name"), values, where))
        result[name] = items
    return result


def instances_from_env(environ: Mapping[str, str], prefix: Optional[str], schema: ConfigSchema) -> InstanceLists:
    """
    Read instances named `<PREFIX>_<SECTION>_INSTANCES_<i>_NAME`.

    Fields use `<PREFIX>_<SECTION>_INSTANCES_<i>_<SECTION>_<FIELD>`. Indices are read
    from 0 upward until the first index without a NAME variable or without one of
    the connection fields of its section (e.g. `DATABASE_URL`).
    """
    head = normalize_prefix(prefix) + ENV_SEPARATOR
    result: InstanceLists = {}
    for name, collection in schema.collections.items():
        items: List[BaseModel] = []
        index = 0
        while True:
            base = f"{head}{collection.env_infix}{ENV_SEPARATOR}{index}{ENV_SEPARATOR}"
            item_name = environ.get(base + "NAME")
            if item_name is None:
                break
            field_head = f"{base}{collection.section.upper()}{ENV_SEPARATOR}"
            values = {
                field: environ[field_head + field.upper()]
                for field in collection.leaves
                if field_head + field.upper() in environ
            }
            missing = [f for f in _REQUIRED_ENV_FIELDS.get(collection.section, ()) if f not in values]
            if missing:
                logger.warning(
                    "Stopping at incomplete instance in environment. collection=%s index=%s missing=%s",
                    name,
                    index,
                    ",".join(missing),
                )
                break
            items.append(_build_item(collection, item_name, values, f"{name}.{index}"))
            index += 1
        if items:
            logger.info("Found instances in environment. collection=%s count=%s", name, len(items))
            result[name] = items
    return result


def merge_instances(collection: str, base: Sequence[BaseModel], overrides: Sequence[BaseModel]) -> Tuple[BaseModel, ...]:
    """Replace items of `base` that share a name with an override; append the rest."""
    merged = list(base)
    for override in overrides:
        for pos, existing in enumerate(merged):
            if existing.name == override.name:  # type: ignore[attr-defined]
                logger.info("Overriding instance from environment. collection=%s name=%s", collection, override.name)  # type: ignore[attr-defined]
                merged[pos] = override
                break
        else:
            logger.info("Adding instance from environment. collection=%s name=%s", collection, override.name)  # type: ignore[attr-defined]
            merged.append(override)
    return tuple(merged)
