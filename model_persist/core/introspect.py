"""
Enumeration and classification of the persistable attributes of a class.
"""

from __future__ import annotations

import dataclasses
import io
import logging
import types
import typing
from collections.abc import Callable, Mapping, Sequence, Set
from dataclasses import dataclass
from enum import Enum, StrEnum
from functools import cache
from logging import Logger
from typing import Annotated, Any, ClassVar, Iterable, Iterator, Union

from pydantic import BaseModel

from .markers import (
    TRANSIENT_ATTR,
    AsChildren,
    AsProperty,
    DirectDescendants,
    Named,
    Transient,
    get_marker,
)
from .utils import PROPERTY_TYPES

__all__ = [
    "Attribute",
    "AttributeKind",
    "AttributeIntrospector",
    "ScalarCollections",
    "SCALAR_TYPES",
    "is_scalar",
    "is_collection",
    "storable_value",
]

SCALAR_TYPES: tuple[type, ...] = PROPERTY_TYPES + (Enum,)
"""
Types persisted as properties. Enums are stored by value.
"""

PERSIST_METADATA_KEY = "persist"
"""
Key of dataclass field metadata holding a marker or list of markers, as an
alternative to {obj}`typing.Annotated`.
"""


class AttributeKind(Enum):
    """
    Shape of an attribute, determining how it's persisted.
    """

    SCALAR = "scalar"
    """Property of the owning node"""

    OBJECT = "object"
    """Child node named after the attribute"""

    COLLECTION = "collection"
    """Container node with a child node per element"""

    MAP = "map"
    """Container node with a child node per entry, named by key"""


class ScalarCollections(StrEnum):
    """
    How collections of scalars are persisted by default.
    """

    PROPERTY = "property"
    """As a single multi-value property"""

    CHILDREN = "children"
    """As a child node per element"""


@dataclass(frozen=True, kw_only=True)
class Attribute:
    """
    Persistable attribute of a class.
    """

    field_name: str
    """Name of the attribute on the object"""

    name: str
    """Name of the attribute in the store"""

    type_hint: Any = None
    """Declared type, or `None` if undeclared"""

    kind: AttributeKind | None = None
    """Declared shape, or `None` if it can only be determined from the value"""

    direct_descendants: bool = False
    """Whether collection/map elements are children of the owning node"""

    scalars_as_children: bool = False
    """Whether a collection of scalars is persisted as child nodes"""

    create_only: bool = False
    """Whether the attribute is only written when its node is created"""

    def read(self, instance: Any) -> Any:
        """
        Get the attribute's current value from the instance.
        """
        return getattr(instance, self.field_name)

    def classify(self, value: Any) -> AttributeKind | None:
        """
        Get the shape of the provided value of this attribute, or `None` if
        it can't be persisted.
        """
        if self.kind is not None:
            return self.kind
        return classify_value(value, scalars_as_children=self.scalars_as_children)


@dataclass(frozen=True)
class _Field:
    """
    Field as declared on a class.
    """

    name: str
    type_hint: Any
    metadata: tuple[Any, ...]
    alias: str | None = None
    excluded: bool = False


class AttributeIntrospector:
    """
    Lists persistable attributes of classes, caching them per class.

    Attributes are derived from dataclass fields, pydantic model fields or
    class annotations across the class hierarchy. A class may instead be
    given an explicit schema using {obj}`AttributeIntrospector.register`.
    """

    _scalar_collections: ScalarCollections
    _cache: dict[tuple[type, bool], list[Attribute]]
    _schemas: dict[type, list[Attribute]]
    _logger: Logger

    def __init__(
        self,
        scalar_collections: ScalarCollections = ScalarCollections.PROPERTY,
        *,
        logger: Logger | None = None,
    ):
        """
        :param scalar_collections: How collections of scalars are persisted unless overridden per attribute using {obj}`AsProperty` or {obj}`AsChildren`
        :param logger: Logger to use, or `None` to use default logger
        """
        self._scalar_collections = scalar_collections
        self._cache = dict()
        self._schemas = dict()
        self._logger = logger or logging.getLogger("model-persist")

    def list_attributes(
        self, cls: type, is_update: bool = False
    ) -> list[Attribute]:
        """
        Get persistable attributes of the provided class.

        :param cls: Class to introspect
        :param is_update: Whether the node being written already exists, in which case create-only attributes are omitted
        """
        key = (cls, is_update)

        if key not in self._cache:
            if cls in self._schemas:
                attributes = [
                    a
                    for a in self._schemas[cls]
                    if not (is_update and a.create_only)
                ]
            else:
                attributes = self._introspect(cls, is_update)

            self._cache[key] = attributes

        return self._cache[key]

    def register(self, cls: type, attributes: Iterable[Attribute]):
        """
        Use an explicit list of attributes for the provided class instead of
        introspecting it.
        """
        self._schemas[cls] = list(attributes)

        for is_update in (False, True):
            self._cache.pop((cls, is_update), None)

    def clear(self):
        """
        Remove all cached attributes. Registered schemas are kept.
        """
        self._cache.clear()

    def _introspect(self, cls: type, is_update: bool) -> list[Attribute]:
        attributes: list[Attribute] = []

        for field in iter_fields(cls):
            named = get_marker(field.metadata, Named)
            transient = get_marker(field.metadata, Transient)

            if field.excluded:
                continue

            if transient is not None and (
                is_update or not transient.create_only
            ):
                continue

            if field.name.startswith("_") and named is None:
                continue

            if _has_transient_accessor(cls, field.name):
                self._logger.debug(
                    f"Skipping {cls.__name__}.{field.name}: accessor is transient"
                )
                continue

            scalars_as_children: bool
            if get_marker(field.metadata, AsChildren):
                scalars_as_children = True
            elif get_marker(field.metadata, AsProperty):
                scalars_as_children = False
            else:
                scalars_as_children = (
                    self._scalar_collections is ScalarCollections.CHILDREN
                )

            supported, kind = classify_hint(
                field.type_hint, scalars_as_children=scalars_as_children
            )

            if not supported:
                self._logger.debug(
                    f"Skipping {cls.__name__}.{field.name}: unsupported type {field.type_hint}"
                )
                continue

            name = named.name if named else field.alias or field.name

            attributes.append(
                Attribute(
                    field_name=field.name,
                    name=name,
                    type_hint=field.type_hint,
                    kind=kind,
                    direct_descendants=get_marker(
                        field.metadata, DirectDescendants
                    )
                    is not None,
                    scalars_as_children=scalars_as_children,
                    create_only=transient is not None,
                )
            )

        return attributes


def iter_fields(cls: type) -> Iterator[_Field]:
    """
    Iterate over fields declared by the class and its bases.
    """
    if issubclass(cls, BaseModel):
        for name, info in cls.model_fields.items():
            yield _Field(
                name,
                info.annotation,
                tuple(info.metadata),
                alias=info.serialization_alias or info.alias,
                excluded=info.exclude is True,
            )
        return

    hints = _get_type_hints(cls)

    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            hint, metadata = _split_annotated(hints.get(f.name, f.type))

            # markers may also be passed as dataclass field metadata
            extra = f.metadata.get(PERSIST_METADATA_KEY, ())
            if not isinstance(extra, (list, tuple)):
                extra = (extra,)

            yield _Field(f.name, hint, metadata + tuple(extra))
        return

    for name, annotation in hints.items():
        hint, metadata = _split_annotated(annotation)

        if typing.get_origin(hint) is ClassVar or hint is ClassVar:
            continue

        yield _Field(name, hint, metadata)


def find_marked_fields(cls: type, marker_cls: type) -> list[str]:
    """
    Get names of fields carrying the provided marker.
    """
    if cls is object or not hasattr(cls, "__mro__"):
        return []

    return [
        f.name
        for f in iter_fields(cls)
        if get_marker(f.metadata, marker_cls) is not None
    ]


def classify_hint(
    hint: Any, *, scalars_as_children: bool = False
) -> tuple[bool, AttributeKind | None]:
    """
    Classify a declared type. Returns a tuple of whether it's supported and
    its kind, or `None` if the kind depends on the value.
    """
    if hint is None or hint is Any or isinstance(hint, typing.TypeVar):
        return True, None

    origin = typing.get_origin(hint)

    # unwrap optional
    if origin in (Union, types.UnionType):
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(args) == 1:
            return classify_hint(
                _split_annotated(args[0])[0],
                scalars_as_children=scalars_as_children,
            )
        return True, None

    cls = origin or hint

    if not isinstance(cls, type):
        # e.g. Literal, NewType
        return True, None

    if cls is type or issubclass(cls, _unsupported_types()):
        return False, None

    if issubclass(cls, Callable) and not issubclass(  # type: ignore
        cls, (Mapping, Sequence, Set)
    ):
        return False, None

    if issubclass(cls, SCALAR_TYPES):
        return True, AttributeKind.SCALAR

    if issubclass(cls, Mapping):
        return True, AttributeKind.MAP

    if issubclass(cls, (Sequence, Set)):
        args = [a for a in typing.get_args(hint) if a is not Ellipsis]

        if not args:
            return True, None

        # nested collections of scalars are never flattened into a property
        element_kinds = [
            classify_hint(_split_annotated(a)[0], scalars_as_children=True)[1]
            for a in args
        ]

        if all(k is AttributeKind.SCALAR for k in element_kinds):
            return True, (
                AttributeKind.COLLECTION
                if scalars_as_children
                else AttributeKind.SCALAR
            )

        if any(k is None for k in element_kinds):
            return True, None

        return True, AttributeKind.COLLECTION

    return True, AttributeKind.OBJECT


def classify_value(
    value: Any, *, scalars_as_children: bool = False
) -> AttributeKind | None:
    """
    Classify a value whose declared type is unknown. Returns `None` if it
    can't be persisted.
    """
    if value is None or is_scalar(value):
        return AttributeKind.SCALAR

    if isinstance(value, Mapping):
        return AttributeKind.MAP

    if is_collection(value):
        if (
            not scalars_as_children
            and len(value)
            and all(is_scalar(v) for v in value)
        ):
            return AttributeKind.SCALAR
        return AttributeKind.COLLECTION

    if (
        callable(value)
        or isinstance(value, type)
        or isinstance(value, _unsupported_types())
    ):
        return None

    return AttributeKind.OBJECT


def is_scalar(value: Any) -> bool:
    return isinstance(value, SCALAR_TYPES)


def is_collection(value: Any) -> bool:
    """
    Check if value is an ordered collection or set, excluding strings and
    bytes.
    """
    return isinstance(value, (Sequence, Set)) and not isinstance(
        value, (str, bytes, bytearray)
    )


def storable_value(value: Any) -> Any:
    """
    Convert a scalar or collection of scalars to a value accepted by stores.
    """
    if isinstance(value, Enum):
        return value.value
    if is_collection(value):
        return [storable_value(v) for v in value]
    return value


@cache
def _unsupported_types() -> tuple[type, ...]:
    """
    Types of attributes which are never persisted.
    """
    from ..store.base import BaseStore, Node
    from .persister import ModelPersister

    return (
        BaseStore,
        Node,
        ModelPersister,
        Logger,
        io.IOBase,
        types.ModuleType,
        types.FunctionType,
        types.MethodType,
    )


def _get_type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError):
        # unresolvable forward references: fall back to raw annotations
        hints: dict[str, Any] = {}
        for base in reversed(cls.__mro__):
            hints.update(getattr(base, "__annotations__", {}))
        return hints


def _split_annotated(hint: Any) -> tuple[Any, tuple[Any, ...]]:
    """
    Split an annotated type into the underlying type and its metadata.
    """
    if typing.get_origin(hint) is Annotated:
        return hint.__origin__, tuple(hint.__metadata__)
    return hint, ()


def _has_transient_accessor(cls: type, name: str) -> bool:
    """
    Check if the field has a `get_<name>` or `is_<name>` accessor, or a
    property of the same name, marked as transient.
    """
    for accessor_name in (f"get_{name}", f"is_{name}", name):
        accessor = getattr(cls, accessor_name, None)

        if isinstance(accessor, property):
            accessor = accessor.fget

        if accessor is not None and getattr(accessor, TRANSIENT_ATTR, False):
            return True

    return False
