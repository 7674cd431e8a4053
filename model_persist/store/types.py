from enum import Enum, auto

from rich.markup import escape

__all__ = [
    "State",
]


class State(Enum):
    """
    State of a node's staged version compared to the version last committed
    to its store. Nodes whose staged type and properties match the committed
    ones are {obj}`State.CLEAN`, even if their children changed.

    Rendered as rich markup, e.g. in the pending change summary printed
    before committing.
    """

    CLEAN = auto()
    """Staged and committed versions are identical"""

    CREATE = auto()
    """Node was staged, but doesn't exist in the committed tree"""

    UPDATE = auto()
    """Type or properties were staged with new values"""

    DELETE = auto()
    """Node exists in the committed tree, but was deleted from the staged tree"""

    @property
    def style(self) -> str:
        """
        Rich style used to render this state.
        """
        return _STYLES[self]

    def __str__(self) -> str:
        return f"{escape('[')}[{self.style}]{self.name}[/{self.style}]{escape(']')}"


_STYLES: dict[State, str] = {
    State.CLEAN: "cyan",
    State.CREATE: "bright_green",
    State.UPDATE: "bright_yellow",
    State.DELETE: "red",
}
