"""State definitions shared by self-play workers and the coordinator."""

from enum import Enum


class RunState(Enum):
    """Run state of a self-play worker."""

    RUNNING = "running"
    NET_CHANGE = "net_change"  # Best network changed; restart with the new one
    FINISHING = "finishing"  # One-way: finish the current teardown and exit


class Color(Enum):
    """Side to move."""

    BLACK = "b"
    WHITE = "w"

    @property
    def other(self) -> "Color":
        return Color.WHITE if self is Color.BLACK else Color.BLACK
