"""Win-rate arithmetic shared by channel stats and the dashboard summary"""

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like JavaScript's Math.round (0.5 always goes up)."""
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def win_rate(won: int, total: int) -> float:
    """Percentage of *won* over *total*; 0 when nothing was decided."""
    if total <= 0:
        return 0.0
    return won / total * 100
