"""Twitch account linking (OAuth authorization code flow)"""

import logging
import secrets

from shared.models import Account
from shared.storage import Storage

from core.errors import (
    InvalidOAuthState,
    MissingProviderConfig,
    OAuthTokenExchangeFailed,
    TwitchAccountAlreadyLinked,
    ValidationFailed,
)

from .session_store import Session, SessionStore
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/auth/twitch/callback"


class TwitchLinkService:
    def __init__(self, storage: Storage, sessions: SessionStore, twitch: TwitchAPIClient) -> None:
        self.storage = storage
        self.sessions = sessions
        self.twitch = twitch

    def begin(self, session: Session, redirect_uri: str) -> str:
        """Issue a state for *session* and return the authorize URL."""
        if not self.twitch.client_id:
            raise MissingProviderConfig()

        state = secrets.token_urlsafe(32)
        self.sessions.set_pending_oauth(session.session_id, state, redirect_uri)
        return self.twitch.generate_oauth_url(state, redirect_uri)

    async def complete(
        self,
        account: Account,
        session_id: str,
        *,
        code: str | None,
        state: str | None,
        error: str | None = None,
    ) -> Account:
        """Finish the flow and store the Twitch identity on *account*."""
        # Consumed up front so a failed callback cannot be replayed
        pending = self.sessions.pop_pending_oauth(session_id)
        if pending is None or not state or not secrets.compare_digest(pending.state, state):
            logger.warning(f"OAuth state mismatch for account {account.id}")
            raise InvalidOAuthState()

        if error:
            logger.warning(f"Twitch denied authorization for account {account.id}: {error}")
            raise OAuthTokenExchangeFailed("Twitch authorization was denied", diagnostic=error)
        if not code:
            raise ValidationFailed(
                errors=[{"field": "code", "message": "Field required", "type": "missing"}]
            )
        if not self.twitch.is_configured:
            raise MissingProviderConfig("Missing Twitch API credentials")

        grant = await self.twitch.exchange_code_for_token(code, pending.redirect_uri)
        profile = await self.twitch.get_user(grant.access_token)

        holder = await self.storage.get_account_by_twitch_id(profile.id)
        if holder is not None and holder.id != account.id:
            logger.warning(
                f"Twitch user {profile.login} already linked to account {holder.id}, "
                f"refused for account {account.id}"
            )
            raise TwitchAccountAlreadyLinked()

        updated = await self.storage.update_account(
            account.id,
            twitch_id=profile.id,
            twitch_username=profile.login,
            twitch_token=grant.access_token,
            twitch_refresh_token=grant.refresh_token,
            twitch_token_expiry=grant.expires_at(),
        )
        if updated is None:
            raise InvalidOAuthState("Account no longer exists")

        logger.info(f"Linked Twitch user {profile.login} to account {account.id}")
        return updated
