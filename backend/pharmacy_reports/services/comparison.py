"""Period-over-period change: direction arrow and rounded percentage."""
import enum
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

FLAT_THRESHOLD = Decimal("0.5")
ONE_DP = Decimal("0.1")


class Direction(str, enum.Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


ARROWS = {
    Direction.UP: "↑",
    Direction.DOWN: "↓",
    Direction.FLAT: "→",
}


@dataclass(frozen=True)
class Delta:
    direction: Direction
    magnitude_percent: Decimal

    @property
    def arrow(self) -> str:
        return ARROWS[self.direction]

    def describe(self, against: str = "prior week") -> str:
        return f"{self.arrow} {self.magnitude_percent}% vs {against}"


def delta(current, previous) -> Optional[Delta]:
    """None when there is no prior value to compare against (absent or zero)."""
    if previous is None:
        return None
    prev = Decimal(str(previous))
    if prev == 0:
        return None
    curr = Decimal(str(current or 0))
    pct = (curr - prev) / prev * 100
    if abs(pct) < FLAT_THRESHOLD:
        return Delta(Direction.FLAT, Decimal("0.0"))
    magnitude = abs(pct).quantize(ONE_DP, rounding=ROUND_HALF_UP)
    return Delta(Direction.UP if pct > 0 else Direction.DOWN, magnitude)
