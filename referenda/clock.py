"""
Block Clock

Injected block-height counter. Governance components never read wall-clock
time: every window, cooldown and timestamp is a block height taken from a
shared BlockClock.
"""

from typing import Any, Dict

from .exceptions import ClockError


class BlockClock:
    """
    Monotonically non-decreasing block height.

    The clock is owned by whoever drives block production (a node, a test);
    governance components only read ``height``.
    """

    def __init__(self, height: int = 0):
        if height < 0:
            raise ClockError(f"Block height cannot be negative, got {height}")
        self._height = height

    @property
    def height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move forward by *blocks* and return the new height."""
        if blocks < 0:
            raise ClockError(f"Cannot advance by a negative block count ({blocks})")
        self._height += blocks
        return self._height

    def set_height(self, height: int) -> int:
        """Jump to *height*. Heights only increase monotonically."""
        if height < self._height:
            raise ClockError(
                f"Block height cannot move backwards ({self._height} -> {height})"
            )
        self._height = height
        return self._height

    def to_dict(self) -> Dict[str, Any]:
        return {"height": self._height}

    def __repr__(self) -> str:
        return f"<BlockClock height={self._height}>"
