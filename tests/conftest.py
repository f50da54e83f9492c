"""Shared pytest fixtures for the channel farming API tests."""

import json
import os
import sys
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

# Same import roots the server runs with: backend/api for core/routers/services,
# backend for shared.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
for path in (PROJECT_ROOT / "backend", PROJECT_ROOT / "backend" / "api"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

os.environ.setdefault("SESSION_SECRET", "test-session-secret")

from app import create_app  # noqa: E402
from core.config import Settings  # noqa: E402
from services import TwitchAPIClient  # noqa: E402
from shared.storage import MemoryStorage  # noqa: E402

TEST_BASE_URL = "http://testserver"


class FakeTwitch:
    """Stands in for id.twitch.tv and api.twitch.tv behind httpx.MockTransport."""

    def __init__(self) -> None:
        self.token_status = 200
        self.token_payload: dict = {
            "access_token": "user-access-token",
            "refresh_token": "user-refresh-token",
            "expires_in": 14400,
            "token_type": "bearer",
        }
        self.user_status = 200
        self.user = {"id": "44322889", "login": "dallas", "display_name": "Dallas"}
        self.fail_with: Exception | None = None
        self.requests: list[httpx.Request] = []

    def token_form(self, index: int = -1) -> dict[str, str]:
        """Decoded form body of a recorded token request."""
        token_requests = [r for r in self.requests if r.url.path == "/oauth2/token"]
        form = parse_qs(token_requests[index].content.decode())
        return {k: v[0] for k, v in form.items()}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with

        if request.url.path == "/oauth2/token":
            return httpx.Response(self.token_status, json=self.token_payload)
        if request.url.path == "/helix/users":
            if self.user_status != 200:
                return httpx.Response(self.user_status, json={"message": "Unauthorized"})
            return httpx.Response(200, json={"data": [self.user]})
        return httpx.Response(404, content=json.dumps({"message": "not found"}))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        session_secret="test-session-secret",
        twitch_client_id="test-client-id",
        twitch_client_secret="test-client-secret",
        database_url="",
        environment="testing",
        log_level="WARNING",
    )


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def fake_twitch() -> FakeTwitch:
    return FakeTwitch()


@pytest.fixture
def twitch_api(fake_twitch: FakeTwitch) -> TwitchAPIClient:
    return TwitchAPIClient(
        client_id="test-client-id",
        client_secret="test-client-secret",
        transport=httpx.MockTransport(fake_twitch.handler),
    )


@pytest.fixture
def app(settings, storage, twitch_api):
    return create_app(settings=settings, storage=storage, twitch_api=twitch_api)


def make_client(app, **transport_options) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app, **transport_options),
        base_url=TEST_BASE_URL,
    )


@pytest.fixture
async def client(app):
    async with make_client(app) as c:
        yield c


@pytest.fixture
async def other_client(app):
    """Second browser against the same app, with its own cookie jar."""
    async with make_client(app) as c:
        yield c


async def register(client: httpx.AsyncClient, username: str = "alice", password: str = "hunter2"):
    response = await client.post(
        "/api/auth/register", json={"username": username, "password": password}
    )
    assert response.status_code == 201, response.text
    return response.json()


async def add_channel(client: httpx.AsyncClient, channel_id: str = "1001", name: str = "shroud", **flags):
    response = await client.post(
        "/api/channels", json={"channelId": channel_id, "channelName": name, **flags}
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
async def alice(client):
    """Logged-in account on ``client``."""
    return await register(client, "alice")


@pytest.fixture
async def bob(other_client):
    """Logged-in account on ``other_client``."""
    return await register(other_client, "bob")
