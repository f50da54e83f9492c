"""Twitch identity client used by the account-linking flow.

Only the user-token half of the Twitch API is needed here: build the authorize
URL, trade the callback code for a user token, and read the user's profile.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx

from core.errors import OAuthTokenExchangeFailed, ProviderUnavailable

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"


@dataclass
class TokenGrant:
    """User token returned by the code exchange."""

    access_token: str
    refresh_token: str | None
    expires_in: int

    def expires_at(self, now: datetime | None = None) -> datetime:
        return (now or datetime.now(UTC)) + timedelta(seconds=self.expires_in)


@dataclass
class TwitchProfile:
    id: str
    login: str
    display_name: str


def _payload(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return response.text


class TwitchAPIClient:
    """Client for the Twitch OAuth and Helix endpoints.

    Holds one shared httpx client for connection reuse. Pass *transport* to
    route requests somewhere other than the network.
    """

    SCOPES = [
        "user:read:email",
        "channel:read:predictions",
        "channel:manage:predictions",
        "channel:read:subscriptions",
        "user:read:follows",
    ]

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret

        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        await self._http.aclose()

    # ------------------------------------------------------------------
    # OAuth flow
    # ------------------------------------------------------------------

    def generate_oauth_url(self, state: str, redirect_uri: str) -> str:
        """Generate the Twitch authorization URL for *redirect_uri*."""
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": redirect_uri,
                "response_type": "code",
                "scope": " ".join(self.SCOPES),
                "state": state,
            }
        )
        return f"{OAUTH_BASE}/authorize?{query}"

    async def exchange_code_for_token(self, code: str, redirect_uri: str) -> TokenGrant:
        """Exchange an OAuth code for a user token.

        Raises:
            ProviderUnavailable: Twitch could not be reached in time.
            OAuthTokenExchangeFailed: Twitch rejected the code.
        """
        try:
            response = await self._http.post(
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": redirect_uri,
                },
            )
        except httpx.TimeoutException:
            logger.error("Timeout while exchanging code for token")
            raise ProviderUnavailable() from None
        except httpx.TransportError as e:
            logger.error(f"Transport error exchanging code: {type(e).__name__}: {e}")
            raise ProviderUnavailable() from None

        if response.status_code != 200:
            payload = _payload(response)
            logger.error(f"Failed to exchange code: {response.status_code}")
            logger.error(f"Response: {payload}")
            raise OAuthTokenExchangeFailed(diagnostic=payload)

        data = _payload(response)
        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            logger.error("No access_token in response")
            raise OAuthTokenExchangeFailed(diagnostic=data)

        try:
            expires_in = int(data.get("expires_in") or 0)
        except (TypeError, ValueError):
            logger.error(f"Invalid expires_in in token response: {data.get('expires_in')!r}")
            raise OAuthTokenExchangeFailed(diagnostic=data) from None

        return TokenGrant(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expires_in=expires_in,
        )

    # ------------------------------------------------------------------
    # User data
    # ------------------------------------------------------------------

    async def get_user(self, access_token: str) -> TwitchProfile:
        """Fetch the profile that owns *access_token*."""
        try:
            response = await self._http.get(
                f"{HELIX_BASE}/users",
                headers={"Authorization": f"Bearer {access_token}", "Client-Id": self.client_id},
            )
        except httpx.TimeoutException:
            logger.error("Timeout while fetching Twitch user")
            raise ProviderUnavailable() from None
        except httpx.TransportError as e:
            logger.error(f"Transport error fetching Twitch user: {type(e).__name__}: {e}")
            raise ProviderUnavailable() from None

        if response.status_code != 200:
            payload = _payload(response)
            logger.error(f"Failed to fetch Twitch user: {response.status_code} {payload}")
            raise OAuthTokenExchangeFailed(
                "Failed to get user info from Twitch", diagnostic=payload
            )

        data = _payload(response)
        users = data.get("data", []) if isinstance(data, dict) else []
        if not isinstance(users, list) or not users:
            logger.error("Twitch returned no user for the new token")
            raise OAuthTokenExchangeFailed("Failed to get user info from Twitch")

        user = users[0]
        if not isinstance(user, dict) or not user.get("id"):
            logger.error(f"Twitch user object has no id: {user}")
            raise OAuthTokenExchangeFailed("Failed to get user info from Twitch", diagnostic=data)

        logger.debug(f"Token belongs to Twitch user: {user.get('id')}")
        return TwitchProfile(
            id=str(user["id"]),
            login=user.get("login", ""),
            display_name=user.get("display_name") or user.get("login", ""),
        )
