"""
Synchronization of object graphs to a hierarchical store.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from contextlib import contextmanager
from enum import Enum
from logging import Logger
from typing import TYPE_CHECKING, Any, Generator, Iterable
from weakref import WeakKeyDictionary

from .exceptions import InvalidArgumentError, StoreError, _assert_argument
from .identity import resolve_path
from .introspect import (
    Attribute,
    AttributeIntrospector,
    AttributeKind,
    is_collection,
    is_scalar,
    storable_value,
)
from .types import TypeRegistry
from .utils import (
    CONTENT_NODE,
    VALUE_PROPERTY,
    join_path,
    node_name,
    normalize_path,
)

if TYPE_CHECKING:
    from ..store.base import BaseStore, Node

__all__ = [
    "ModelPersister",
]


class ModelPersister:
    """
    Writes an object graph to a store and reconciles the store so it mirrors
    the graph: missing nodes are created, properties are updated, and nodes
    which no longer correspond to anything in the graph are deleted.

    All writes of a top-level `persist` call are committed at once when it
    returns. Use {obj}`ModelPersister.transaction` to commit several calls
    at once.

    Example:

    ```
    persister = ModelPersister()
    persister.persist_at("/content/site", site, store)
    ```

    ```{note}
    Collection elements without an identity (see {obj}`resolve_path`) get a
    random node name on every call, so their nodes are replaced rather than
    updated. Give elements a path to persist them stably.
    ```
    """

    _types: TypeRegistry
    _introspector: AttributeIntrospector
    _content_node: str
    _auto_commit: bool
    _logger: Logger

    _transactions: WeakKeyDictionary[BaseStore, int]
    """
    Mapping of store to depth of nested transactions currently open on it.
    """

    def __init__(
        self,
        *,
        types: TypeRegistry | None = None,
        introspector: AttributeIntrospector | None = None,
        content_node: str = CONTENT_NODE,
        auto_commit: bool = True,
        logger: Logger | None = None,
    ):
        """
        :param types: Registry used to resolve node types, or `None` to create one owned by this persister
        :param introspector: Introspector used to list attributes, or `None` to create one owned by this persister
        :param content_node: Name of child node holding properties of objects whose class declares a child type
        :param auto_commit: Commit store when the outermost transaction completes; if `False`, the caller is responsible for committing
        :param logger: Logger to use, or `None` to use default logger
        """
        self._logger = logger or logging.getLogger("model-persist")
        # registry may be empty, so check for None explicitly
        self._types = (
            types if types is not None else TypeRegistry(logger=self._logger)
        )
        self._introspector = (
            introspector
            if introspector is not None
            else AttributeIntrospector(logger=self._logger)
        )
        self._content_node = content_node
        self._auto_commit = auto_commit
        self._transactions = WeakKeyDictionary()

    @property
    def types(self) -> TypeRegistry:
        return self._types

    @property
    def introspector(self) -> AttributeIntrospector:
        return self._introspector

    def persist(
        self,
        instance: Any,
        store: BaseStore,
        deep: bool = True,
    ):
        """
        Persist object at the path it identifies.

        :param instance: Object to persist
        :param store: Store to write to
        :param deep: Whether to persist nested objects, collections and maps; if `False`, only the object's own scalar attributes are written
        :raises InvalidArgumentError: If no path could be resolved for the object
        """
        _assert_argument(instance is not None, "Object to save cannot be null")

        path = resolve_path(instance, logger=self._logger)
        _assert_argument(
            path is not None,
            f"No path found for object of type {type(instance)}; use persist_at() to provide one",
        )

        assert path is not None
        self.persist_at(path, instance, store, deep)

    def persist_at(
        self,
        path: str,
        instance: Any,
        store: BaseStore,
        deep: bool = True,
    ):
        """
        Persist object at provided path, regardless of any path it
        identifies.

        :param path: Absolute path of node to write
        :param instance: Object to persist
        :param store: Store to write to
        :param deep: Whether to persist nested objects, collections and maps; if `False`, only the object's own scalar attributes are written
        """
        _assert_argument(
            isinstance(path, str) and bool(path.strip()),
            "Node path cannot be null/empty",
        )
        _assert_argument(instance is not None, "Object to save cannot be null")
        _assert_argument(store is not None, "Store cannot be null")

        path = normalize_path(path)

        with self.transaction(store):
            self._persist(store, path, instance, deep)

    @contextmanager
    def transaction(self, store: BaseStore) -> Generator[BaseStore, None, None]:
        """
        Context in which writes to the store are accumulated. Nested
        contexts on the same store share one transaction, which is committed
        when the outermost context exits without error.

        If an error occurs, nothing is committed and staged changes are left
        in the store; the caller may revert or retry them.
        """
        _assert_argument(store is not None, "Store cannot be null")

        depth = self._transactions.get(store, 0)
        self._transactions[store] = depth + 1

        try:
            yield store
        except Exception:
            if depth == 0:
                self._logger.error(
                    f"Aborting transaction on {store}: changes not committed"
                )
            raise
        else:
            if depth == 0 and self._auto_commit:
                self._logger.debug(f"Committing transaction on {store}")
                store.commit()
        finally:
            if depth == 0:
                del self._transactions[store]
            else:
                self._transactions[store] = depth

    def _persist(self, store: BaseStore, path: str, instance: Any, deep: bool):
        """
        Write object to node at provided path.
        """
        type_key = self._types.resolve(instance)
        is_update = store.get_node(path) is not None

        self._logger.debug(
            f"Creating node at: {path} of type: {type_key.primary_type}"
        )
        node = store.resolve_or_create(
            path, type_key.primary_type, self._types.default_type
        )

        if type_key.child_type:
            content_path = join_path(path, self._content_node)
            self._logger.debug(
                f"Needs a child node, creating node at: {content_path} of type: {type_key.child_type}"
            )
            node = store.resolve_or_create(
                content_path, type_key.child_type, self._types.default_type
            )

        if is_collection(instance) or isinstance(instance, Mapping):
            # root of this call is itself a collection or map
            elements: set[str] = set()
            self._persist_complex(store, node, None, instance, keep=elements)
            self._delete_orphans(store, node.path, elements)
            return

        if is_scalar(instance):
            self._set_property(store, node, VALUE_PROPERTY, instance)
            return

        attributes = self._introspector.list_attributes(
            type(instance), is_update
        )

        # containers owned by this object are never pruned along with
        # direct-descendant elements
        keep = {
            join_path(node.path, a.name)
            for a in attributes
            if not a.direct_descendants
            and a.kind is not AttributeKind.SCALAR
        }
        if type_key.child_type:
            keep.add(join_path(node.path, self._content_node))

        implicit_count = sum(
            1
            for a in attributes
            if a.direct_descendants and a.kind is not AttributeKind.SCALAR
        )
        persisted_count = 0

        for attribute in attributes:
            if self._persist_attribute(
                store, node, instance, attribute, deep, keep
            ):
                persisted_count += 1

        # prune once all direct-descendant collections are written; if one
        # was skipped, its elements can't be told apart from orphans
        if implicit_count and persisted_count == implicit_count:
            self._delete_orphans(store, node.path, keep)

    def _persist_attribute(
        self,
        store: BaseStore,
        node: Node,
        instance: Any,
        attribute: Attribute,
        deep: bool,
        keep: set[str],
    ) -> bool:
        """
        Persist one attribute of the instance.

        :param keep: Paths of children to keep, extended with the elements of direct-descendant collections
        :returns: Whether the attribute was persisted as direct descendants of the node
        """
        try:
            value = attribute.read(instance)
        except Exception as e:
            self._logger.warning(
                f"Failed to read attribute '{attribute.field_name}' of {type(instance).__name__}, skipping: {type(e).__name__}: {e}"
            )
            return False

        kind = attribute.classify(value)

        if kind is None:
            self._logger.debug(
                f"Skipping attribute '{attribute.field_name}' of {type(instance).__name__}: unsupported value of type {type(value)}"
            )
            return False

        if kind is AttributeKind.SCALAR:
            self._set_property(store, node, attribute.name, value)

            if (
                deep
                and value is not None
                and attribute.kind is None
                and not attribute.direct_descendants
            ):
                # kind comes from the value, which may have been persisted
                # as child nodes previously
                self._delete_child(store, node, attribute.name)

            return False

        # value of a runtime kind may have been persisted as a property
        store.get_properties(node).pop(attribute.name, None)

        if not deep or value is None:
            return False

        self._persist_complex(
            store,
            node,
            attribute.name,
            value,
            keep=keep if attribute.direct_descendants else None,
        )
        return attribute.direct_descendants

    def _set_property(self, store: BaseStore, node: Node, name: str, value: Any):
        """
        Remove property, then write it if value is not `None`. Removing
        first ensures a property changing type is written from scratch.
        """
        properties = store.get_properties(node)
        properties.pop(name, None)

        if value is not None:
            properties[name] = storable_value(value)

    def _persist_complex(
        self,
        store: BaseStore,
        parent: Node,
        name: str | None,
        value: Any,
        *,
        keep: set[str] | None = None,
    ):
        """
        Persist a nested object, collection or map as children of the parent
        node.

        :param name: Name of the child node or container, not used for collections and maps if `keep` is passed
        :param keep: If passed, collection/map elements are persisted directly under the parent and their paths added to it; the caller is responsible for pruning
        """
        if value is None:
            return

        is_map = isinstance(value, Mapping)

        if not is_map and not is_collection(value):
            # single compound object: always persisted deeply
            assert name is not None
            path = join_path(parent.path, name)

            if keep is not None:
                keep.add(path)

            self._persist(store, path, value, True)
            return

        if keep is not None:
            children_root = parent.path
            elements = keep
        elif not len(value):
            assert name is not None
            self._delete_child(store, parent, name)
            return
        else:
            assert name is not None
            children_root = self._build_container(store, parent, name)
            elements = set()

        if is_map:
            self._persist_map(store, children_root, value, elements)
        else:
            self._persist_collection(store, children_root, value, elements)

        if keep is None:
            self._delete_orphans(store, children_root, elements)

    def _build_container(self, store: BaseStore, parent: Node, name: str) -> str:
        """
        Create container node under which elements are persisted.
        """
        container_path = join_path(parent.path, name)

        # placeholder establishes the container's type
        self._persist(store, container_path, object(), False)

        return container_path

    def _persist_collection(
        self,
        store: BaseStore,
        children_root: str,
        collection: Iterable[Any],
        elements: set[str],
    ):
        for element in collection:
            if element is None:
                continue

            child_path = join_path(children_root, self._get_element_name(element))
            elements.add(child_path)

            self._persist(store, child_path, element, True)

    def _persist_map(
        self,
        store: BaseStore,
        children_root: str,
        mapping: Mapping[Any, Any],
        elements: set[str],
    ):
        for key, element in mapping.items():
            if element is None:
                continue

            child_path = join_path(children_root, _get_key_name(key))
            elements.add(child_path)

            self._persist(store, child_path, element, True)

    def _get_element_name(self, element: Any) -> str:
        """
        Get node name of collection element from its path, or generate a
        random one.
        """
        if not is_scalar(element) and not is_collection(element):
            path = resolve_path(element, logger=self._logger)
            if path is not None:
                return node_name(path)

        return str(uuid.uuid4())

    def _delete_child(self, store: BaseStore, parent: Node, name: str):
        """
        Remove child node, e.g. the container of a collection which is now
        empty.
        """
        child = store.get_child(parent, name)

        if child is not None:
            self._logger.debug(f"Deleting stale node {child.path}")
            self._delete_node(store, child)

    def _delete_orphans(self, store: BaseStore, container_path: str, keep: set[str]):
        """
        Delete children of container which are not in `keep`.
        """
        container = store.get_node(container_path)

        if container is None:
            return

        for child in store.get_children(container):
            if child.path not in keep:
                self._logger.debug(f"Deleting orphan {child.path}")
                self._delete_node(store, child)

    def _delete_node(self, store: BaseStore, node: Node):
        try:
            store.delete(node)
        except StoreError as e:
            self._logger.error(f"Unable to remove stale node at {node.path}: {e}")


def _get_key_name(key: Any) -> str:
    """
    Get node name for a map key.
    """
    if isinstance(key, Enum):
        return key.name

    name = str(key)

    if not name or "/" in name:
        raise InvalidArgumentError(f"Map key {key!r} is not a valid node name")

    return name
