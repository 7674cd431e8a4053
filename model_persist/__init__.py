"""
ModelPersist: synchronize Python object graphs into hierarchical,
node-based stores.
"""

from pyrollup import rollup

from . import core, store
from .core import *  # noqa
from .store import *  # noqa

__all__ = rollup(core, store)

__canonical_children__ = [
    "core",
    "store",
]
