"""
In-memory store with transactional commit.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from logging import Logger
from typing import Any, Iterator

from ..core.exceptions import NodeNotFoundError, StoreError
from ..core.utils import (
    DEFAULT_TYPE,
    ROOT_PATH,
    join_path,
    node_name,
    normalize_path,
    parent_path,
)
from .base import BaseStore, Node
from .types import State

__all__ = [
    "MemoryStore",
]


@dataclass
class NodeRecord:
    """
    Data of a single node.
    """

    node_type: str
    properties: dict[str, Any] = field(default_factory=dict)
    children: list[str] = field(default_factory=list)
    """Names of children in order of creation"""

    def is_changed(self, other: NodeRecord) -> bool:
        return (
            self.node_type != other.node_type
            or self.properties != other.properties
        )


class MemoryStore(BaseStore):
    """
    Store which keeps its tree in memory.

    Maintains the committed tree and a working tree which is created upon
    the first modification after a commit or revert. Reads observe the
    working tree, so uncommitted changes are visible to the writer.
    """

    _committed: dict[str, NodeRecord]
    """Mapping of path to node as of the last commit"""

    _working: dict[str, NodeRecord] | None = None
    """Mapping of path to node including staged changes, or `None` if clean"""

    _root_type: str

    def __init__(
        self,
        *,
        root_type: str = DEFAULT_TYPE,
        logger: Logger | None = None,
    ):
        super().__init__(logger=logger)
        self._root_type = root_type
        self._committed = {ROOT_PATH: NodeRecord(root_type)}

    def __str__(self):
        return f"{type(self).__name__}(nodes={len(self._nodes)}, dirty={self._working is not None})"

    def get_node(self, path: str) -> Node | None:
        path = normalize_path(path)
        return Node(self, path) if path in self._nodes else None

    def resolve_or_create(
        self,
        path: str,
        node_type: str,
        default_type: str = DEFAULT_TYPE,
        create_ancestors: bool = True,
    ) -> Node:
        path = normalize_path(path)

        if path in self._nodes:
            return Node(self, path)

        parent = parent_path(path)
        assert parent is not None

        if parent not in self._nodes:
            if not create_ancestors:
                raise NodeNotFoundError(parent)

            self.resolve_or_create(parent, default_type, default_type, True)

        nodes = self._get_working()
        nodes[path] = NodeRecord(node_type)
        nodes[parent].children.append(node_name(path))

        self._logger.debug(f"Created node '{path}' of type '{node_type}'")

        return Node(self, path)

    def get_type(self, node: Node) -> str:
        return self._get_record(node.path).node_type

    def set_type(self, node: Node, node_type: str):
        if not node_type:
            raise StoreError(f"Invalid type for node '{node.path}'")
        self._get_record(node.path, write=True).node_type = node_type

    def get_children(self, node: Node) -> Iterator[Node]:
        record = self._get_record(node.path)

        # snapshot so callers may delete while iterating
        for name in list(record.children):
            yield Node(self, join_path(node.path, name))

    def delete(self, node: Node):
        path = normalize_path(node.path)

        if path == ROOT_PATH:
            raise StoreError("Root node cannot be deleted")

        # ensure it exists
        self._get_record(path)

        nodes = self._get_working()
        prefix = f"{path}/"

        for descendant in [p for p in nodes if p.startswith(prefix)]:
            del nodes[descendant]
        del nodes[path]

        parent = parent_path(path)
        assert parent is not None
        nodes[parent].children.remove(node_name(path))

        self._logger.debug(f"Deleted node '{path}'")

    def commit(self):
        if self._working is None:
            self._logger.debug("No staged changes to commit")
            return

        self._logger.debug(f"Committing changes: {self.get_summary()}")

        self._commit_hook(self.pending_changes())

        self._committed = self._working
        self._working = None

    def revert(self):
        if self._working is not None:
            self._logger.debug(f"Reverting changes: {self.get_summary()}")
        self._working = None

    def pending_changes(self) -> dict[State, list[str]]:
        index: dict[State, list[str]] = {
            State.CREATE: [],
            State.UPDATE: [],
            State.DELETE: [],
        }

        if self._working is None:
            return index

        committed, working = self._committed, self._working

        for path, record in working.items():
            if path not in committed:
                index[State.CREATE].append(path)
            elif record.is_changed(committed[path]):
                index[State.UPDATE].append(path)

        index[State.DELETE] = [p for p in committed if p not in working]

        for paths in index.values():
            paths.sort()

        return index

    def _commit_hook(self, changes: dict[State, list[str]]):
        """
        Invoked with pending changes before they're published; may be
        overridden to write changes through to a backing medium.
        """

    def _read_properties(self, path: str) -> dict[str, Any]:
        return self._get_record(path).properties

    def _write_properties(self, path: str) -> dict[str, Any]:
        return self._get_record(path, write=True).properties

    @property
    def _nodes(self) -> dict[str, NodeRecord]:
        """
        Current view of nodes, including staged changes.
        """
        return self._working if self._working is not None else self._committed

    def _get_working(self) -> dict[str, NodeRecord]:
        """
        Get working tree, copying committed tree if there are no staged
        changes yet.
        """
        if self._working is None:
            self._working = copy.deepcopy(self._committed)
        return self._working

    def _get_record(self, path: str, write: bool = False) -> NodeRecord:
        path = normalize_path(path)
        nodes = self._get_working() if write else self._nodes

        if path not in nodes:
            raise NodeNotFoundError(path)

        return nodes[path]
