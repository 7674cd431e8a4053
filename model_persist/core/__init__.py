"""
This module implements synchronization of object graphs to hierarchical
stores: node type and attribute resolution, object identity and the tree
reconciler.
"""

from pyrollup import rollup

from . import exceptions, identity, introspect, markers, persister, types, utils
from .exceptions import *  # noqa
from .identity import *  # noqa
from .introspect import *  # noqa
from .markers import *  # noqa
from .persister import *  # noqa
from .types import *  # noqa
from .utils import *  # noqa

__all__ = rollup(
    persister,
    identity,
    types,
    introspect,
    markers,
    exceptions,
    utils,
)

__canonical_children__ = [
    "persister",
    "identity",
    "types",
    "introspect",
    "markers",
    "exceptions",
    "utils",
]
