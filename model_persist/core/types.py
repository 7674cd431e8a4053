"""
Resolution of node types for objects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from logging import Logger
from typing import Any

from .exceptions import _assert_argument
from .introspect import find_marked_fields
from .markers import (
    CHILD_TYPE_ATTR,
    MODEL_TYPES_ATTR,
    RESOURCE_TYPE_ATTR,
    ResourceType,
)
from .utils import DEFAULT_TYPE

__all__ = [
    "TypeKey",
    "TypeRegistry",
]


@dataclass(frozen=True)
class TypeKey:
    """
    Node types resolved for a class.
    """

    primary_type: str
    """Type of the node the object is persisted to"""

    child_type: str | None = None
    """Type of the content child holding the object's properties, if any"""


class TypeRegistry:
    """
    Resolves and caches node types per class.

    Types are derived from the class alone, so the resolved
    {obj}`TypeKey` of a class never changes for the lifetime of the
    registry. Owned by the caller, typically via the
    {obj}`ModelPersister` it's passed to.
    """

    _default_type: str
    _cache: dict[type, TypeKey]
    _logger: Logger

    def __init__(
        self,
        default_type: str = DEFAULT_TYPE,
        *,
        logger: Logger | None = None,
    ):
        self._default_type = default_type
        self._cache = dict()
        self._logger = logger or logging.getLogger("model-persist")

    def __str__(self):
        return f"TypeRegistry: default_type={self._default_type}, cache={self._cache}"

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, cls: type) -> bool:
        return cls in self._cache

    @property
    def default_type(self) -> str:
        return self._default_type

    def resolve(self, instance: Any) -> TypeKey:
        """
        Get node types for the provided instance.
        """
        if instance is None:
            return TypeKey(self._default_type)

        cls = type(instance)

        if cls in self._cache:
            return self._cache[cls]

        primary_type = self._get_primary_type(instance)
        child_type = getattr(cls, CHILD_TYPE_ATTR, None) or None

        if primary_type:
            type_key = TypeKey(primary_type, child_type)
        else:
            type_key = TypeKey(self._default_type)

        self._cache[cls] = type_key

        self._logger.debug(f"Resolved type of {cls}: {type_key}")

        return type_key

    def register(self, cls: type, type_key: TypeKey):
        """
        Explicitly set types of a class, bypassing resolution.
        """
        _assert_argument(
            cls not in self._cache or self._cache[cls] == type_key,
            f"Attempt to change registered type of {cls} from {self._cache.get(cls)} to {type_key}",
        )

        self._cache[cls] = type_key

    def clear(self):
        """
        Remove all cached types.
        """
        self._cache.clear()

    def _get_primary_type(self, instance: Any) -> str | None:
        cls = type(instance)

        # explicit type on class
        value = getattr(cls, RESOURCE_TYPE_ATTR, None)
        if value:
            return value

        # explicit type held by instance
        for field_name in find_marked_fields(cls, ResourceType):
            value = getattr(instance, field_name, None)
            if isinstance(value, str) and value:
                return value

        # fall back to declared model types if unambiguous
        model_types: tuple[str, ...] = getattr(cls, MODEL_TYPES_ATTR, ())
        if len(model_types) == 1:
            return model_types[0]
        elif len(model_types) > 1:
            self._logger.debug(
                f"Ambiguous model types for {cls}: {model_types}, using default type"
            )

        return None
