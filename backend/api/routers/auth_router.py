"""Authentication API routes"""

import logging

from fastapi import APIRouter, Cookie, Depends, Request, Response, status
from fastapi.responses import RedirectResponse
from pydantic import Field

from core.config import Settings
from core.dependencies import (
    SESSION_COOKIE,
    CurrentUser,
    get_account_service,
    get_auth_service,
    get_config,
    get_current_user,
    get_optional_user,
    get_session_store,
    get_twitch_link_service,
)
from services import AccountService, AuthService, SessionStore, TwitchLinkService
from services.twitch_link_service import CALLBACK_PATH

from .schemas import APIModel, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


# ============================================
# Request / Response Models
# ============================================


class Credentials(APIModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=256)


class AccountResponse(APIModel):
    id: int
    username: str


class StatusUser(APIModel):
    id: int
    username: str
    twitch_username: str | None = None


class StatusResponse(APIModel):
    is_authenticated: bool
    user: StatusUser | None = None


class TwitchAuthURLResponse(APIModel):
    auth_url: str


# ============================================
# Helpers
# ============================================


def _set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="none" if settings.session_cookie_secure else "lax",
        max_age=settings.session_ttl_seconds,
        path="/",
    )


def _start_session(
    response: Response,
    account_id: int,
    sessions: SessionStore,
    auth: AuthService,
    settings: Settings,
) -> None:
    session = sessions.create(account_id)
    token = auth.create_session_token(account_id, session.session_id)
    _set_session_cookie(response, token, settings)


def _callback_uri(request: Request) -> str:
    """Callback on the origin the browser came from, else on this server."""
    origin = request.headers.get("origin")
    base = origin if origin else str(request.base_url)
    return f"{base.rstrip('/')}{CALLBACK_PATH}"


# ============================================
# Endpoints
# ============================================


@router.post("/register", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: Credentials,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    sessions: SessionStore = Depends(get_session_store),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_config),
) -> AccountResponse:
    """Create an account and log it in"""
    account = await accounts.register(body.username, body.password)
    _start_session(response, account.id, sessions, auth, settings)
    return AccountResponse(id=account.id, username=account.username)


@router.post("/login", response_model=AccountResponse)
async def login(
    body: Credentials,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    sessions: SessionStore = Depends(get_session_store),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_config),
) -> AccountResponse:
    account = await accounts.authenticate(body.username, body.password)
    _start_session(response, account.id, sessions, auth, settings)
    logger.info(f"User logged in: {account.username} ({account.id})")
    return AccountResponse(id=account.id, username=account.username)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    auth_token: str | None = Cookie(None),
    auth: AuthService = Depends(get_auth_service),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_config),
) -> MessageResponse:
    """Destroy the current session, if any, and clear the cookie"""
    payload = auth.verify_token(auth_token) if auth_token else None
    if payload and sessions.destroy(payload["sid"]):
        logger.info(f"User logged out: account {payload['sub']}")

    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="none" if settings.session_cookie_secure else "lax",
    )
    return MessageResponse(message="Logged out successfully")


@router.get(
    "/status",
    response_model=StatusResponse,
    response_model_exclude_unset=True,
)
async def auth_status(user: CurrentUser | None = Depends(get_optional_user)) -> StatusResponse:
    """Report whether the caller holds a live session"""
    if user is None:
        return StatusResponse(is_authenticated=False)

    account = user.account
    return StatusResponse(
        is_authenticated=True,
        user=StatusUser(
            id=account.id,
            username=account.username,
            twitch_username=account.twitch_username,
        ),
    )


@router.get("/twitch", response_model=TwitchAuthURLResponse)
async def twitch_auth_url(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    linker: TwitchLinkService = Depends(get_twitch_link_service),
) -> TwitchAuthURLResponse:
    """Start linking a Twitch account to the logged-in user"""
    auth_url = linker.begin(user.session, _callback_uri(request))
    return TwitchAuthURLResponse(auth_url=auth_url)


@router.get("/twitch/callback")
async def twitch_oauth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    user: CurrentUser = Depends(get_current_user),
    linker: TwitchLinkService = Depends(get_twitch_link_service),
    settings: Settings = Depends(get_config),
) -> RedirectResponse:
    """Handle the Twitch OAuth callback"""
    await linker.complete(
        user.account,
        user.session.session_id,
        code=code,
        state=state,
        error=error,
    )
    return RedirectResponse(url=settings.dashboard_path, status_code=status.HTTP_302_FOUND)
