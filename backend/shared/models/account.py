"""Data model for dashboard accounts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    """Dashboard user account, optionally linked to a Twitch identity."""

    id: int
    username: str
    password_hash: str
    twitch_id: str | None = None
    twitch_username: str | None = None
    twitch_token: str | None = None
    twitch_refresh_token: str | None = None
    twitch_token_expiry: datetime | None = None
