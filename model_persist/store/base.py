"""
Interface to a hierarchical, node-based store.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import MutableMapping
from dataclasses import dataclass
from decimal import Decimal
from logging import Logger
from typing import Any, Iterator, TypeVar

from ..core.exceptions import StoreError
from ..core.utils import (
    DEFAULT_TYPE,
    PROPERTY_TYPES,
    join_path,
    node_name,
    parent_path,
)
from .types import State

__all__ = [
    "BaseStore",
    "Node",
    "PropertyMap",
]

T = TypeVar("T")


class BaseStore(ABC):
    """
    Tree of typed nodes, each holding named scalar properties and uniquely
    named children.

    Changes are staged until {obj}`BaseStore.commit` is invoked, which
    publishes all of them at once. {obj}`BaseStore.revert` discards them.
    A store is owned by a single writer for the duration of a
    synchronization.
    """

    _logger: Logger

    def __init__(self, *, logger: Logger | None = None):
        self._logger = logger or logging.getLogger("model-persist")

    @abstractmethod
    def get_node(self, path: str) -> Node | None:
        """
        Get node at provided path, or `None`{l=python} if it doesn't exist.
        """
        ...

    @abstractmethod
    def resolve_or_create(
        self,
        path: str,
        node_type: str,
        default_type: str = DEFAULT_TYPE,
        create_ancestors: bool = True,
    ) -> Node:
        """
        Get node at provided path, creating it with `node_type` if it
        doesn't exist. An existing node is returned as-is, keeping its type.

        :param path: Absolute path of node
        :param node_type: Type of node if created
        :param default_type: Type of any ancestors created along the way
        :param create_ancestors: Whether to create missing ancestors; if `False`{l=python}, a missing parent raises {obj}`NodeNotFoundError`
        """
        ...

    @abstractmethod
    def get_type(self, node: Node) -> str:
        ...

    @abstractmethod
    def set_type(self, node: Node, node_type: str):
        ...

    @abstractmethod
    def get_children(self, node: Node) -> Iterator[Node]:
        """
        Iterate over a snapshot of the node's current children.
        """
        ...

    @abstractmethod
    def delete(self, node: Node):
        """
        Delete node along with its subtree.
        """
        ...

    @abstractmethod
    def commit(self):
        """
        Publish all staged changes.
        """
        ...

    @abstractmethod
    def revert(self):
        """
        Discard all staged changes.
        """
        ...

    @abstractmethod
    def pending_changes(self) -> dict[State, list[str]]:
        """
        Mapping of state to sorted paths of nodes in that state.
        """
        ...

    @abstractmethod
    def _read_properties(self, path: str) -> dict[str, Any]:
        """
        Get properties of node for reading.
        """
        ...

    @abstractmethod
    def _write_properties(self, path: str) -> dict[str, Any]:
        """
        Get properties of node for modification in the working state.
        """
        ...

    @property
    def has_changes(self) -> bool:
        return any(len(paths) for paths in self.pending_changes().values())

    @property
    def root(self) -> Node:
        root = self.get_node("/")
        assert root is not None
        return root

    def get_properties(self, node: Node) -> PropertyMap:
        """
        Get mutable view of node's properties.
        """
        return PropertyMap(self, node.path)

    def get_child(self, node: Node, name: str) -> Node | None:
        return self.get_node(join_path(node.path, name))

    def walk(self, node: Node | None = None) -> Iterator[Node]:
        """
        Depth-first traversal of provided node (root by default) and its
        descendants.
        """
        node = node or self.root
        yield node

        for child in self.get_children(node):
            yield from self.walk(child)

    def get_summary(self) -> str:
        """
        Return a brief summary of how many nodes are in each state.
        """
        changes = self.pending_changes()

        creates = len(changes[State.CREATE])
        updates = len(changes[State.UPDATE])
        deletes = len(changes[State.DELETE])

        return f"(create/update/delete) {creates}/{updates}/{deletes} nodes"

    def get_dirty_summary(self) -> str:
        """
        Get a summary of nodes with pending changes, sorted by path.
        """
        lines: list[str] = []

        for state, paths in self.pending_changes().items():
            lines += [f"{state} {path}" for path in paths]

        return "\n".join(sorted(lines, key=lambda line: line.split(" ")[-1]))

    def __contains__(self, path: str) -> bool:
        return self.get_node(path) is not None


@dataclass(frozen=True)
class Node:
    """
    Lightweight handle to a node in a store. Holds no state besides its
    path; accessors raise {obj}`NodeNotFoundError` if the node has since
    been deleted.
    """

    store: BaseStore
    path: str

    def __str__(self):
        return f"Node('{self.path}')"

    @property
    def name(self) -> str:
        return node_name(self.path) if self.path != "/" else ""

    @property
    def node_type(self) -> str:
        return self.store.get_type(self)

    @property
    def properties(self) -> PropertyMap:
        return self.store.get_properties(self)

    @property
    def children(self) -> list[Node]:
        return list(self.store.get_children(self))

    @property
    def parent(self) -> Node | None:
        path = parent_path(self.path)
        return self.store.get_node(path) if path is not None else None

    def get_child(self, name: str) -> Node | None:
        return self.store.get_child(self, name)


class PropertyMap(MutableMapping[str, Any]):
    """
    Mutable mapping of a node's properties. Values are validated when set;
    sequences are stored as lists.
    """

    _store: BaseStore
    _path: str

    def __init__(self, store: BaseStore, path: str):
        self._store = store
        self._path = path

    def __getitem__(self, name: str) -> Any:
        return self._store._read_properties(self._path)[name]

    def __setitem__(self, name: str, value: Any):
        if not isinstance(name, str) or not name:
            raise StoreError(f"Invalid property name {name!r} on {self._path}")

        self._store._write_properties(self._path)[name] = _check_value(
            self._path, name, value
        )

    def __delitem__(self, name: str):
        del self._store._write_properties(self._path)[name]

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._store._read_properties(self._path)))

    def __len__(self) -> int:
        return len(self._store._read_properties(self._path))

    def __repr__(self) -> str:
        return f"PropertyMap({self._path}, {dict(self)})"

    def get_as(self, name: str, cls: type[T], default: T | None = None) -> T | None:
        """
        Get property converted to provided type, or `default` if it's
        missing or can't be converted.
        """
        value = self.get(name)

        if value is None:
            return default

        if cls is list:
            return value if isinstance(value, list) else [value]  # type: ignore

        if isinstance(value, list):
            value = value[0] if len(value) else None
            if value is None:
                return default

        if isinstance(value, cls):
            return value

        if cls in (str, int, float, Decimal):
            try:
                return cls(value)  # type: ignore
            except (TypeError, ValueError, ArithmeticError):
                return default

        return default


def _check_value(path: str, name: str, value: Any) -> Any:
    """
    Ensure value can be stored as a property, converting sequences to lists.
    """
    if isinstance(value, (list, tuple, set, frozenset)):
        values = list(value)

        for element in values:
            if not isinstance(element, PROPERTY_TYPES):
                raise StoreError(
                    f"Unsupported value {element!r} of type {type(element)} in multi-value property '{name}' on {path}"
                )

        return values

    if not isinstance(value, PROPERTY_TYPES):
        raise StoreError(
            f"Unsupported value {value!r} of type {type(value)} for property '{name}' on {path}"
        )

    return value
