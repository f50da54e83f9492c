"""Twitch account linking over the OAuth authorization code flow."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from conftest import make_client, register

from app import create_app
from services import TwitchAPIClient


async def _begin(client, **headers) -> dict[str, str]:
    response = await client.get("/api/auth/twitch", headers=headers)
    assert response.status_code == 200, response.text
    url = urlparse(response.json()["authUrl"])
    return {k: v[0] for k, v in parse_qs(url.query).items()}


async def test_auth_url_parameters(client, alice):
    response = await client.get("/api/auth/twitch")

    auth_url = response.json()["authUrl"]
    assert auth_url.startswith("https://id.twitch.tv/oauth2/authorize?")
    params = {k: v[0] for k, v in parse_qs(urlparse(auth_url).query).items()}
    assert params["client_id"] == "test-client-id"
    assert params["redirect_uri"] == "http://testserver/api/auth/twitch/callback"
    assert params["response_type"] == "code"
    assert params["scope"].split(" ") == [
        "user:read:email",
        "channel:read:predictions",
        "channel:manage:predictions",
        "channel:read:subscriptions",
        "user:read:follows",
    ]
    assert len(params["state"]) >= 32


async def test_auth_url_uses_request_origin(client, alice):
    params = await _begin(client, origin="http://localhost:5173")

    assert params["redirect_uri"] == "http://localhost:5173/api/auth/twitch/callback"


async def test_each_auth_url_gets_a_fresh_state(client, alice):
    first = await _begin(client)
    second = await _begin(client)

    assert first["state"] != second["state"]


async def test_callback_links_twitch_account(client, storage, fake_twitch, alice):
    params = await _begin(client, origin="http://localhost:5173")

    response = await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": params["state"]}
    )

    assert response.status_code == 302
    assert response.headers["location"] == "/dashboard"

    form = fake_twitch.token_form()
    assert form["code"] == "auth-code"
    assert form["grant_type"] == "authorization_code"
    assert form["redirect_uri"] == "http://localhost:5173/api/auth/twitch/callback"

    account = await storage.get_account(alice["id"])
    assert account.twitch_id == "44322889"
    assert account.twitch_username == "dallas"
    assert account.twitch_token == "user-access-token"
    assert account.twitch_refresh_token == "user-refresh-token"
    assert account.twitch_token_expiry is not None

    status = (await client.get("/api/auth/status")).json()
    assert status["user"]["twitchUsername"] == "dallas"
    assert "twitchToken" not in status["user"]


async def test_callback_replay_is_rejected(client, alice):
    params = await _begin(client)
    query = {"code": "auth-code", "state": params["state"]}
    first = await client.get("/api/auth/twitch/callback", params=query)

    second = await client.get("/api/auth/twitch/callback", params=query)

    assert first.status_code == 302
    assert second.status_code == 400
    assert second.json() == {"message": "Invalid state parameter"}


async def test_callback_with_wrong_state_consumes_pending_state(client, fake_twitch, alice):
    params = await _begin(client)

    wrong = await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": "forged"}
    )
    right = await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": params["state"]}
    )

    assert wrong.status_code == 400
    assert right.status_code == 400
    assert fake_twitch.requests == []


async def test_callback_without_pending_state(client, fake_twitch, alice):
    response = await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": "anything"}
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Invalid state parameter"}
    assert fake_twitch.requests == []


async def test_state_is_bound_to_the_session(app, client, alice):
    params = await _begin(client)

    async with make_client(app) as second_browser:
        await second_browser.post(
            "/api/auth/login", json={"username": "alice", "password": "hunter2"}
        )
        response = await second_browser.get(
            "/api/auth/twitch/callback", params={"code": "auth-code", "state": params["state"]}
        )

    assert response.status_code == 400


async def test_callback_requires_login(client):
    response = await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": "x"}
    )

    assert response.status_code == 401


async def test_token_exchange_rejected(client, storage, fake_twitch, alice):
    fake_twitch.token_status = 400
    fake_twitch.token_payload = {"status": 400, "message": "Invalid authorization code"}
    params = await _begin(client)

    response = await client.get(
        "/api/auth/twitch/callback", params={"code": "bad-code", "state": params["state"]}
    )

    assert response.status_code == 400
    assert response.json() == {
        "message": "Failed to get access token",
        "error": {"status": 400, "message": "Invalid authorization code"},
    }
    assert (await storage.get_account(alice["id"])).twitch_id is None


async def test_profile_fetch_failure(client, storage, fake_twitch, alice):
    fake_twitch.user_status = 401
    params = await _begin(client)

    response = await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": params["state"]}
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Failed to get user info from Twitch"
    assert (await storage.get_account(alice["id"])).twitch_token is None


async def test_non_numeric_token_lifetime_is_rejected(client, storage, fake_twitch, alice):
    fake_twitch.token_payload = {**fake_twitch.token_payload, "expires_in": "soon"}
    params = await _begin(client)

    response = await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": params["state"]}
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Failed to get access token"
    assert response.json()["error"]["expires_in"] == "soon"
    assert (await storage.get_account(alice["id"])).twitch_token is None


async def test_profile_without_id_is_rejected(client, storage, fake_twitch, alice):
    fake_twitch.user = {"login": "dallas", "display_name": "Dallas"}
    params = await _begin(client)

    response = await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": params["state"]}
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Failed to get user info from Twitch"
    assert (await storage.get_account(alice["id"])).twitch_id is None


@pytest.mark.parametrize(
    "failure",
    [httpx.ConnectTimeout("timed out"), httpx.ConnectError("connection refused")],
)
async def test_provider_unreachable(client, fake_twitch, alice, failure):
    params = await _begin(client)
    fake_twitch.fail_with = failure

    response = await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": params["state"]}
    )

    assert response.status_code == 502
    assert response.json() == {"message": "Twitch is unreachable, please try again"}


async def test_provider_error_parameter(client, fake_twitch, alice):
    params = await _begin(client)

    response = await client.get(
        "/api/auth/twitch/callback", params={"error": "access_denied", "state": params["state"]}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "access_denied"
    assert fake_twitch.requests == []


async def test_callback_without_code(client, alice):
    params = await _begin(client)

    response = await client.get("/api/auth/twitch/callback", params={"state": params["state"]})

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "code"


async def test_twitch_account_already_linked_elsewhere(client, other_client, storage, alice, bob):
    params = await _begin(client)
    await client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": params["state"]}
    )

    params = await _begin(other_client)
    response = await other_client.get(
        "/api/auth/twitch/callback", params={"code": "auth-code", "state": params["state"]}
    )

    assert response.status_code == 400
    assert response.json() == {"message": "This Twitch account is already linked to another user"}
    assert (await storage.get_account(bob["id"])).twitch_id is None


async def test_missing_client_id(settings, storage):
    settings = settings.model_copy(update={"twitch_client_id": "", "twitch_client_secret": ""})
    app = create_app(
        settings=settings,
        storage=storage,
        twitch_api=TwitchAPIClient(client_id="", client_secret=""),
    )

    async with make_client(app) as client:
        await register(client)
        response = await client.get("/api/auth/twitch")

    assert response.status_code == 500
    assert response.json() == {"message": "Missing Twitch client ID configuration"}
