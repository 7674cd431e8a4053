"""
Resolution of the store path identifying an object.
"""

from __future__ import annotations

import logging
from logging import Logger
from typing import Any

from .introspect import find_marked_fields
from .markers import PATH_ACCESSOR_ATTR, PATH_ATTR, NodePath

__all__ = [
    "resolve_path",
]

PATH_GETTER = "get_path"
PATH_FIELD = "path"


def resolve_path(instance: Any, *, logger: Logger | None = None) -> str | None:
    """
    Get the store path of an object, trying in order:

    1. A path declared with {obj}`at_path`, held by an attribute marked
    {obj}`NodePath`, or returned by a method marked {obj}`path_accessor`
    2. The return value of a `get_path()` method
    3. The value of an attribute named `path`

    Returns `None`{l=python} if no path is found, in which case the caller
    must provide one.
    """
    logger = logger or logging.getLogger("model-persist")

    if instance is None:
        return None

    cls = type(instance)

    try:
        path = _get_marked_path(instance)

        if path is None:
            getter = getattr(instance, PATH_GETTER, None)

            if callable(getter):
                path = _check_path(getter())
            elif not callable(getattr(cls, PATH_FIELD, None)) and hasattr(
                instance, PATH_FIELD
            ):
                path = _check_path(getattr(instance, PATH_FIELD))

        if path is not None:
            return path
    except Exception as e:
        logger.warning(
            f"Failed to get path of {cls.__name__} instance: {type(e).__name__}: {e}"
        )

    logger.warning(
        f"Object of type {cls} does not have a path marker, {PATH_GETTER}() or {PATH_FIELD} attribute; multiple instances may conflict"
    )
    return None


def _get_marked_path(instance: Any) -> str | None:
    cls = type(instance)

    path = _check_path(getattr(cls, PATH_ATTR, None))
    if path:
        return path

    for field_name in find_marked_fields(cls, NodePath):
        path = _check_path(getattr(instance, field_name, None))
        if path:
            return path

    for base in cls.__mro__:
        for member in vars(base).values():
            accessor = member.fget if isinstance(member, property) else member

            if callable(accessor) and getattr(
                accessor, PATH_ACCESSOR_ATTR, False
            ):
                path = _check_path(accessor(instance))
                if path:
                    return path

    return None


def _check_path(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None
