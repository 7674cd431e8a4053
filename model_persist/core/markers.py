"""
Markers which describe how objects are mapped to nodes.

Field markers are attached as {obj}`typing.Annotated` metadata to fields of
dataclasses, pydantic models or annotated plain classes:

```
@dataclass
class Page:
    title: Annotated[str, Named("jcr:title")]
    tags: Annotated[list[str], AsChildren()]
    cache: Annotated[dict, Transient()] = field(default_factory=dict)
```

Class decorators declare node types and fixed paths; method decorators mark
accessors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

__all__ = [
    "Named",
    "Transient",
    "DirectDescendants",
    "AsProperty",
    "AsChildren",
    "NodePath",
    "ResourceType",
    "resource_type",
    "model",
    "child_type",
    "at_path",
    "transient",
    "path_accessor",
]

M = TypeVar("M")
T = TypeVar("T", bound=type)
F = TypeVar("F", bound=Callable)

RESOURCE_TYPE_ATTR = "_persist_resource_type"
MODEL_TYPES_ATTR = "_persist_model_types"
CHILD_TYPE_ATTR = "_persist_child_type"
PATH_ATTR = "_persist_path"
TRANSIENT_ATTR = "_persist_transient"
PATH_ACCESSOR_ATTR = "_persist_path_accessor"


@dataclass(frozen=True)
class Named:
    """
    Name under which the attribute is stored, if different from the field
    name. Also enables persisting a field whose name starts with `_`.
    """

    name: str


@dataclass(frozen=True)
class Transient:
    """
    Excludes the attribute from persistence.

    :param create_only: Only write the attribute when its node is first created, e.g. for a creation timestamp; skip it when updating an existing node
    """

    create_only: bool = False


@dataclass(frozen=True)
class DirectDescendants:
    """
    Persist elements of a collection or map directly under the owning node
    rather than under a container node named after the attribute.
    """


@dataclass(frozen=True)
class AsProperty:
    """
    Persist a collection of scalars as a single multi-value property.
    """


@dataclass(frozen=True)
class AsChildren:
    """
    Persist each element of a collection of scalars as a child node.
    """


@dataclass(frozen=True)
class NodePath:
    """
    The attribute holds the store path of its instance.
    """


@dataclass(frozen=True)
class ResourceType:
    """
    The attribute holds the node type of its instance.

    ```{note}
    Node types are cached per class, so the value of the first persisted
    instance applies to all instances of its class.
    ```
    """


def get_marker(metadata: Iterable[Any], marker_cls: type[M]) -> M | None:
    """
    Get marker of the provided class from annotation metadata. The marker
    class itself may be used in place of an instance.
    """
    for item in metadata:
        if isinstance(item, marker_cls):
            return item
        if item is marker_cls:
            return marker_cls()
    return None


def resource_type(value: str):
    """
    Declares the node type of a class.

    Example:

    ```
    @resource_type("nt:folder")
    class Folder: ...
    ```
    """
    assert value, "Resource type must not be empty"

    def decorator(cls: T) -> T:
        setattr(cls, RESOURCE_TYPE_ATTR, value)
        return cls

    return decorator


def model(*resource_types: str):
    """
    Declares the resource types a class models. If exactly one type is
    declared, it's used as node type when no {obj}`resource_type` is set.
    """

    def decorator(cls: T) -> T:
        setattr(cls, MODEL_TYPES_ATTR, tuple(resource_types))
        return cls

    return decorator


def child_type(value: str):
    """
    Declares that instances keep their properties in a content child node of
    the provided type, e.g. a file node and its content node.
    """
    assert value, "Child type must not be empty"

    def decorator(cls: T) -> T:
        setattr(cls, CHILD_TYPE_ATTR, value)
        return cls

    return decorator


def at_path(path: str):
    """
    Declares a fixed store path for all instances of a class.
    """

    def decorator(cls: T) -> T:
        setattr(cls, PATH_ATTR, path)
        return cls

    return decorator


def transient(func: F) -> F:
    """
    Marks a `get_<name>` or `is_<name>` accessor as transient, which
    excludes field `<name>` from persistence.
    """
    setattr(func, TRANSIENT_ATTR, True)
    return func


def path_accessor(func: F) -> F:
    """
    Marks a method which returns the store path of its instance.
    """
    setattr(func, PATH_ACCESSOR_ATTR, True)
    return func
