"""Dependency injection utilities for FastAPI"""

import logging
from dataclasses import dataclass

from fastapi import Cookie, Depends, Request

from core.config import Settings
from core.errors import StorageUnavailable, Unauthenticated
from services import (
    AccountService,
    ActivityService,
    AuthService,
    ChannelService,
    DashboardService,
    PredictionService,
    Session,
    SessionStore,
    SettingsService,
    TwitchAPIClient,
    TwitchLinkService,
    WebhookNotifier,
)
from shared.models import Account
from shared.storage import Storage

logger = logging.getLogger(__name__)

SESSION_COOKIE = "auth_token"


# ============================================
# App-wide Singletons (live on app.state)
# ============================================


def get_config(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> Storage:
    storage = request.app.state.storage
    if storage is None:
        raise StorageUnavailable()
    return storage


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def get_twitch_api(request: Request) -> TwitchAPIClient:
    return request.app.state.twitch_api


def get_notifier(request: Request) -> WebhookNotifier:
    return request.app.state.notifier


# ============================================
# Service Dependencies
# ============================================


def get_account_service(storage: Storage = Depends(get_storage)) -> AccountService:
    return AccountService(storage)


def get_activity_service(
    storage: Storage = Depends(get_storage),
    notifier: WebhookNotifier = Depends(get_notifier),
) -> ActivityService:
    return ActivityService(storage, notifier)


def get_channel_service(
    storage: Storage = Depends(get_storage),
    activities: ActivityService = Depends(get_activity_service),
) -> ChannelService:
    return ChannelService(storage, activities)


def get_prediction_service(
    storage: Storage = Depends(get_storage),
    activities: ActivityService = Depends(get_activity_service),
) -> PredictionService:
    return PredictionService(storage, activities)


def get_settings_service(storage: Storage = Depends(get_storage)) -> SettingsService:
    return SettingsService(storage)


def get_dashboard_service(storage: Storage = Depends(get_storage)) -> DashboardService:
    return DashboardService(storage)


def get_twitch_link_service(
    storage: Storage = Depends(get_storage),
    sessions: SessionStore = Depends(get_session_store),
    twitch: TwitchAPIClient = Depends(get_twitch_api),
) -> TwitchLinkService:
    return TwitchLinkService(storage, sessions, twitch)


# ============================================
# Authentication Dependencies
# ============================================


@dataclass
class CurrentUser:
    """The authenticated account together with the session it came in on."""

    account: Account
    session: Session


async def get_optional_user(
    auth_token: str | None = Cookie(None),
    auth: AuthService = Depends(get_auth_service),
    sessions: SessionStore = Depends(get_session_store),
    storage: Storage = Depends(get_storage),
) -> CurrentUser | None:
    """Resolve the session cookie; None when it is missing, invalid or expired."""
    if not auth_token:
        return None

    payload = auth.verify_token(auth_token)
    if not payload:
        return None

    session = sessions.get(payload["sid"])
    if session is None or str(session.account_id) != str(payload["sub"]):
        logger.debug("Session cookie refers to an unknown or expired session")
        return None

    account = await storage.get_account(session.account_id)
    if account is None:
        logger.warning(f"Session {session.session_id[:8]}... refers to a deleted account")
        sessions.destroy(session.session_id)
        return None

    return CurrentUser(account=account, session=session)


async def get_current_user(
    user: CurrentUser | None = Depends(get_optional_user),
) -> CurrentUser:
    if user is None:
        raise Unauthenticated()
    return user


async def get_current_account(user: CurrentUser = Depends(get_current_user)) -> Account:
    """Return the logged-in account or fail with 401"""
    return user.account
