__all__ = [
    "InvalidArgumentError",
    "StoreError",
    "NodeNotFoundError",
]


class InvalidArgumentError(ValueError):
    """
    Raised when a persist operation is invoked with invalid arguments, e.g.
    a blank path, a `None`{l=python} instance or no store. Nothing is written
    to the store when this is raised.
    """


class StoreError(Exception):
    """
    Raised by a store when an operation on the backing tree fails.

    Failures while writing the current state of an object graph propagate
    to the caller; failures while pruning orphaned nodes are logged and
    the pruning pass continues.
    """


class NodeNotFoundError(StoreError):
    """
    Raised when a node handle refers to a path which no longer exists, or
    when a required ancestor is missing.
    """

    path: str

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Node does not exist: '{path}'")


def _assert_argument(cond: bool, *args):
    """
    Helper to raise an invalid-argument error if the condition is False.
    """
    if cond is not True:
        raise InvalidArgumentError(*args)
