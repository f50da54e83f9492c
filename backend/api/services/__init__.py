"""Services layer - Business logic

Services are constructed per request from the app-wide storage, session store
and HTTP clients, and reached through dependency injection.
"""

from .account_service import AccountService
from .activity_service import ActivityService
from .auth_service import AuthService, hash_password, verify_password
from .channel_service import ChannelService
from .dashboard_service import DashboardService
from .prediction_service import PredictionService
from .session_store import Session, SessionStore
from .settings_service import SettingsService
from .twitch_api import TokenGrant, TwitchAPIClient, TwitchProfile
from .twitch_link_service import TwitchLinkService
from .webhook import WebhookNotifier

__all__ = [
    "AccountService",
    "ActivityService",
    "AuthService",
    "ChannelService",
    "DashboardService",
    "PredictionService",
    "Session",
    "SessionStore",
    "SettingsService",
    "TokenGrant",
    "TwitchAPIClient",
    "TwitchLinkService",
    "TwitchProfile",
    "WebhookNotifier",
    "hash_password",
    "verify_password",
]
