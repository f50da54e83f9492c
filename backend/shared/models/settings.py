"""Data model for per-account prediction / notification settings."""

from __future__ import annotations

from dataclasses import dataclass

RISK_LEVELS = ("conservative", "balanced", "aggressive")

# Defaults applied at registration and when a settings row is created lazily.
DEFAULT_SETTINGS: dict[str, object] = {
    "risk_level": "balanced",
    "max_points_per_prediction": 2500,
    "use_chat_sentiment": True,
    "use_historical_outcomes": True,
    "use_streamer_performance": True,
    "use_global_patterns": False,
    "notifications_enabled": False,
    "webhook_url": None,
}


@dataclass
class UserSettings:
    """Settings record, one per account."""

    id: int
    owner_id: int
    risk_level: str = "balanced"
    max_points_per_prediction: int = 2500
    use_chat_sentiment: bool = True
    use_historical_outcomes: bool = True
    use_streamer_performance: bool = True
    use_global_patterns: bool = False
    notifications_enabled: bool = False
    webhook_url: str | None = None
