"""Data model for tracked channels."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

AUTOMATION_FLAGS = ("auto_farming", "auto_watchtime", "auto_predictions")


@dataclass
class Channel:
    """Twitch channel tracked by one account."""

    id: int
    owner_id: int
    channel_id: str  # Twitch broadcaster id, unique per owner
    channel_name: str
    auto_farming: bool = True
    auto_watchtime: bool = True
    auto_predictions: bool = True
    total_points: int = 0
    total_watchtime: int = 0  # minutes
    predictions_won: int = 0
    predictions_lost: int = 0
    last_points_update: datetime | None = None
    last_watchtime_update: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.auto_farming or self.auto_watchtime or self.auto_predictions
