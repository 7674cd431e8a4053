"""
Store persisted to a folder on the filesystem.

Each node maps to a folder named after the node; its type and properties
are kept in a metadata file within the folder. For example:

/store_root/.meta.yaml
/store_root/content/.meta.yaml
/store_root/content/page/.meta.yaml
/store_root/content/page/jcr:content/.meta.yaml
"""

from __future__ import annotations

import shutil
from logging import Logger
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, ValidationError

from ..core.exceptions import StoreError
from ..core.utils import DEFAULT_TYPE, ROOT_PATH, join_path, node_name
from ..tools.yaml_model import BaseYamlModel
from .base import Node
from .memory import MemoryStore, NodeRecord
from .types import State

__all__ = [
    "FsStore",
    "NodeMeta",
    "META_FILENAME",
]

META_FILENAME = ".meta.yaml"
"""
Filename containing node metadata.
"""


class NodeMeta(BaseYamlModel):
    """
    Node metadata used to populate yaml.
    """

    node_type: str = Field(
        validation_alias=AliasChoices("node_type", "type"),
        serialization_alias="type",
    )
    properties: dict[str, Any] = Field(default_factory=dict)


class FsStore(MemoryStore):
    """
    {obj}`MemoryStore` which loads its tree from a folder and writes
    committed changes back to it.
    """

    _root_dir: Path

    def __init__(
        self,
        root_dir: Path,
        *,
        root_type: str = DEFAULT_TYPE,
        logger: Logger | None = None,
    ):
        super().__init__(root_type=root_type, logger=logger)

        if not root_dir.is_dir():
            raise StoreError(f"Store folder does not exist: '{root_dir}'")

        self._root_dir = root_dir
        self._committed = self._load()

        self._logger.debug(
            f"Loaded {len(self._committed)} nodes from '{root_dir}'"
        )

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    def resolve_or_create(
        self,
        path: str,
        node_type: str,
        default_type: str = DEFAULT_TYPE,
        create_ancestors: bool = True,
    ) -> Node:
        if path.rstrip("/").endswith(f"/{META_FILENAME}"):
            raise StoreError(
                f"Node name '{META_FILENAME}' is reserved: '{path}'"
            )
        return super().resolve_or_create(
            path, node_type, default_type, create_ancestors
        )

    def _commit_hook(self, changes: dict[State, list[str]]):
        working = self._working
        assert working is not None

        try:
            # sorted, so ancestors are removed before descendants
            for path in changes[State.DELETE]:
                node_dir = self._map_node_dir(path)
                if node_dir.exists():
                    shutil.rmtree(node_dir)

            # sorted, so ancestors are written before descendants
            for path in sorted(changes[State.CREATE] + changes[State.UPDATE]):
                self._dump_node(path, working[path])
        except OSError as e:
            raise StoreError(
                f"Failed to write changes to '{self._root_dir}': {e}"
            ) from e

        self._logger.debug(
            f"Wrote {len(changes[State.CREATE]) + len(changes[State.UPDATE])} and removed {len(changes[State.DELETE])} nodes in '{self._root_dir}'"
        )

    def _map_node_dir(self, path: str) -> Path:
        """
        Map node path to its folder.
        """
        if path == ROOT_PATH:
            return self._root_dir
        return self._root_dir.joinpath(*path.strip("/").split("/"))

    def _dump_node(self, path: str, record: NodeRecord):
        node_dir = self._map_node_dir(path)
        node_dir.mkdir(parents=True, exist_ok=True)

        meta = NodeMeta(node_type=record.node_type, properties=record.properties)
        meta.dump_yaml(node_dir / META_FILENAME)

    def _load(self) -> dict[str, NodeRecord]:
        """
        Load tree from root folder.
        """
        nodes: dict[str, NodeRecord] = {}

        try:
            self._load_node(ROOT_PATH, self._root_dir, nodes)
        except (OSError, ValueError, ValidationError) as e:
            raise StoreError(
                f"Failed to load store from '{self._root_dir}': {e}"
            ) from e

        return nodes

    def _load_node(
        self, path: str, node_dir: Path, nodes: dict[str, NodeRecord]
    ):
        meta_file = node_dir / META_FILENAME

        if meta_file.is_file():
            meta = NodeMeta.load_yaml(meta_file)
            record = NodeRecord(meta.node_type, properties=meta.properties)
        else:
            if path != ROOT_PATH:
                self._logger.warning(
                    f"No metadata found for node '{path}' in '{node_dir}', using type '{DEFAULT_TYPE}'"
                )
            record = NodeRecord(
                self._root_type if path == ROOT_PATH else DEFAULT_TYPE
            )

        nodes[path] = record

        for child_dir in sorted(node_dir.iterdir()):
            if not child_dir.is_dir():
                continue

            child_path = join_path(path, child_dir.name)
            record.children.append(node_name(child_path))

            self._load_node(child_path, child_dir, nodes)
