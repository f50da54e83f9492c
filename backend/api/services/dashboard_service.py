"""Dashboard summary aggregation"""

from typing import Any

from shared.models import Account
from shared.models.prediction import RESULT_WON
from shared.storage import Storage

from .rates import round_half_up, win_rate

# Fixed change figures shown next to the totals; there is no history to diff against.
POINTS_CHANGE_PERCENT = 2
WATCHTIME_CHANGE_PERCENT = 4
WIN_RATE_CHANGE = 2


class DashboardService:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    async def summary(self, account: Account) -> dict[str, Any]:
        channels = await self.storage.list_channels(account.id)
        predictions = await self.storage.list_predictions(account.id)

        total_points = sum(c.total_points for c in channels)
        total_watchtime = sum(c.total_watchtime for c in channels)
        completed = [p for p in predictions if p.is_settled]
        won = sum(1 for p in completed if p.result == RESULT_WON)

        return {
            "total_points": total_points,
            "points_change": total_points * POINTS_CHANGE_PERCENT // 100,
            "total_watchtime": total_watchtime,
            "watchtime_change": total_watchtime * WATCHTIME_CHANGE_PERCENT // 100,
            "win_rate": int(round_half_up(win_rate(won, len(completed)))),
            "win_rate_change": WIN_RATE_CHANGE,
            "active_channels": sum(1 for c in channels if c.is_active),
            "total_channels": len(channels),
        }
