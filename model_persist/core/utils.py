"""
Common constants and utilities for working with store paths.
"""

import datetime
from decimal import Decimal

from .exceptions import InvalidArgumentError

__all__ = [
    "PROPERTY_TYPES",
    "DEFAULT_TYPE",
    "CONTENT_NODE",
    "VALUE_PROPERTY",
    "ROOT_PATH",
    "normalize_path",
    "join_path",
    "parent_path",
    "node_name",
]

DEFAULT_TYPE = "nt:unstructured"
"""
Type of generic container nodes, used when no type is declared.
"""

CONTENT_NODE = "jcr:content"
"""
Name of the child node which holds an object's properties when its class
declares a child type.
"""

VALUE_PROPERTY = "value"
"""
Property holding the value of a scalar written as its own node, e.g. an
element of a collection of scalars persisted as children.
"""

ROOT_PATH = "/"

PROPERTY_TYPES: tuple[type, ...] = (
    str,
    int,
    float,
    bool,
    bytes,
    Decimal,
    datetime.datetime,
    datetime.date,
)
"""
Types which may be stored as property values, either directly or as
elements of a multi-value property.
"""


def normalize_path(path: str) -> str:
    """
    Return an absolute path with redundant and trailing separators removed.
    """
    if not isinstance(path, str) or not path.strip():
        raise InvalidArgumentError("Node path cannot be null/empty")

    segments = [s for s in path.strip().split("/") if s]

    for segment in segments:
        if segment in (".", ".."):
            raise InvalidArgumentError(
                f"Relative segment '{segment}' not allowed in path '{path}'"
            )

    return ROOT_PATH + "/".join(segments)


def join_path(parent: str, name: str) -> str:
    """
    Append a single node name to a path.
    """
    if not name or "/" in name:
        raise InvalidArgumentError(
            f"Invalid node name '{name}' under '{parent}'"
        )

    parent = normalize_path(parent)

    if parent == ROOT_PATH:
        return f"/{name}"

    return f"{parent}/{name}"


def parent_path(path: str) -> str | None:
    """
    Return the path of the parent node, or `None`{l=python} for the root.
    """
    path = normalize_path(path)

    if path == ROOT_PATH:
        return None

    parent = path.rsplit("/", 1)[0]
    return parent or ROOT_PATH


def node_name(path: str) -> str:
    """
    Return the last segment of a path. A path without separators is returned
    as-is.
    """
    return path.rstrip("/").rsplit("/", 1)[-1]
