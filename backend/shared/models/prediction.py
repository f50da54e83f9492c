"""Data model for predictions table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

RESULT_PENDING = "pending"
RESULT_WON = "won"
RESULT_LOST = "lost"


@dataclass
class Prediction:
    """A wager placed on a channel prediction.

    ``channel_id`` is the Twitch channel id, not ``Channel.id``.
    """

    id: int
    owner_id: int
    channel_id: str
    prediction_id: str
    title: str
    points: int
    chosen_option: str
    outcome: str | None = None
    result: str = RESULT_PENDING  # 'pending' | 'won' | 'lost'
    points_won: int = 0
    created_at: datetime | None = None

    @property
    def is_settled(self) -> bool:
        return self.result != RESULT_PENDING
