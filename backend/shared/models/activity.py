"""Data models for the append-only activities log."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

ACTIVITY_POINTS = "points"
ACTIVITY_PREDICTION = "prediction"
ACTIVITY_PREDICTION_WON = "prediction_won"
ACTIVITY_PREDICTION_LOST = "prediction_lost"
ACTIVITY_WATCHTIME = "watchtime"
ACTIVITY_CHANNEL = "channel"

ACTIVITY_TYPES = frozenset(
    {
        ACTIVITY_POINTS,
        ACTIVITY_PREDICTION,
        ACTIVITY_PREDICTION_WON,
        ACTIVITY_PREDICTION_LOST,
        ACTIVITY_WATCHTIME,
        ACTIVITY_CHANNEL,
    }
)


@dataclass
class NewActivity:
    """Activity to be appended alongside another write."""

    owner_id: int
    type: str
    description: str
    channel_id: str | None = None
    channel_name: str | None = None
    points: int | None = None
    metadata: dict[str, Any] | None = field(default=None)

    def __post_init__(self) -> None:
        if self.type not in ACTIVITY_TYPES:
            raise ValueError(f"Unknown activity type: {self.type}")


@dataclass
class Activity:
    """Stored activity record."""

    id: int
    owner_id: int
    type: str
    description: str
    channel_id: str | None = None
    channel_name: str | None = None
    points: int | None = None
    metadata: dict[str, Any] | None = field(default=None)
    created_at: datetime | None = None
