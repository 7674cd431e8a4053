"""
Interface to configuration as persisted in .yaml file.
"""
from __future__ import annotations

from logging import Logger
from pathlib import Path
from typing import Any, Self

from pydantic import (
    BaseModel,
    field_serializer,
    field_validator,
    model_validator,
)

from ..core import (
    CONTENT_NODE,
    DEFAULT_TYPE,
    AttributeIntrospector,
    ModelPersister,
    ScalarCollections,
    TypeRegistry,
)
from ..store import FsStore
from .yaml_model import BaseYamlModel

__all__ = [
    "Config",
    "StoreConfig",
]


class Config(BaseYamlModel):
    """
    Encapsulates configuration for use in tools.
    """

    root_store_dir: Path | None = None
    """
    Root folder for per-store folders.
    """

    stores: dict[str, StoreConfig]
    """
    Mapping of store names to configs.
    """

    @field_validator("root_store_dir", mode="before")
    def validate_root_store_dir(cls, value: Any) -> Any:
        return _validate_dir(value)

    @field_serializer("root_store_dir")
    def serialize_root_store_dir(self, value: Path | None) -> str | None:
        return str(value) if isinstance(value, Path) else value

    @model_validator(mode="after")
    def validate_stores(self) -> Self:
        # propagate store dir to stores if applicable
        if self.root_store_dir:
            for store_name, store in self.stores.items():
                if not store.store_dir:
                    store_dir = self.root_store_dir / store_name
                    _validate_dir(store_dir)

                    store.store_dir = store_dir
        return self


class StoreConfig(BaseModel):
    """
    Encapsulates info for a store and how objects are persisted to it.
    """

    store_dir: Path | None = None
    root_model_fqcn: str | None = None
    target_path: str | None = None
    default_type: str = DEFAULT_TYPE
    content_node: str = CONTENT_NODE
    scalar_collections: ScalarCollections = ScalarCollections.PROPERTY

    @field_validator("store_dir", mode="before")
    def validate_store_dir(cls, value: Any) -> Any:
        return _validate_dir(value)

    @field_serializer("store_dir")
    def serialize_store_dir(self, value: Path | None) -> str | None:
        return str(value) if isinstance(value, Path) else value

    @field_serializer("scalar_collections")
    def serialize_scalar_collections(self, value: ScalarCollections) -> str:
        return value.value

    @field_validator("target_path")
    def validate_target_path(cls, value: str | None) -> str | None:
        if value is not None and not value.startswith("/"):
            raise ValueError(f"target path must be absolute: '{value}'")
        return value

    def create_store(self, *, logger: Logger) -> FsStore:
        """
        Get store from this config's folder.
        """
        if self.store_dir is None:
            raise ValueError("store_dir not configured")

        return FsStore(self.store_dir, root_type=self.default_type, logger=logger)

    def create_persister(
        self, *, logger: Logger, auto_commit: bool = True
    ) -> ModelPersister:
        """
        Get persister from this config's fields.
        """
        return ModelPersister(
            types=TypeRegistry(self.default_type, logger=logger),
            introspector=AttributeIntrospector(
                self.scalar_collections, logger=logger
            ),
            content_node=self.content_node,
            auto_commit=auto_commit,
            logger=logger,
        )


def _validate_dir(value: Any) -> Any:
    """
    Coerce to path and ensure it exists.
    """
    if not isinstance(value, (str, Path)):
        # let pydantic handle type error
        return value

    path = Path(value) if isinstance(value, str) else value

    if not path.is_dir():
        raise ValueError(f"folder does not exist: '{path}'")

    return path
