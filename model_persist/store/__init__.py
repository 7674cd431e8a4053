"""
This module implements the boundary to hierarchical, node-based stores
along with an in-memory and a filesystem-backed store.
"""

from pyrollup import rollup

from . import base, fs, memory, types
from .base import *  # noqa
from .fs import *  # noqa
from .memory import *  # noqa
from .types import *  # noqa

__all__ = rollup(
    base,
    memory,
    fs,
    types,
)

__canonical_children__ = [
    "base",
    "memory",
    "fs",
    "types",
]
