"""Shared data models for the channel farming backend."""

from .account import Account
from .activity import Activity, NewActivity
from .channel import Channel
from .prediction import Prediction
from .settings import DEFAULT_SETTINGS, UserSettings

__all__ = [
    "DEFAULT_SETTINGS",
    "Account",
    "Activity",
    "Channel",
    "NewActivity",
    "Prediction",
    "UserSettings",
]
