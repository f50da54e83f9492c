"""Registration, login, logout and the session gate."""

from conftest import make_client, register


async def test_register_creates_account_and_logs_in(client):
    response = await client.post(
        "/api/auth/register", json={"username": "alice", "password": "hunter2"}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["username"] == "alice"
    assert isinstance(body["id"], int)
    assert "auth_token" in response.cookies

    status = (await client.get("/api/auth/status")).json()
    assert status == {
        "isAuthenticated": True,
        "user": {"id": body["id"], "username": "alice", "twitchUsername": None},
    }


async def test_register_same_username_twice_fails(client, other_client):
    await register(client, "alice")

    response = await other_client.post(
        "/api/auth/register", json={"username": "alice", "password": "different"}
    )

    assert response.status_code == 400
    assert response.json() == {"message": "Username already exists"}


async def test_register_creates_default_settings(client, alice):
    response = await client.get("/api/settings")

    assert response.status_code == 200
    body = response.json()
    assert body["ownerId"] == alice["id"]
    assert body["riskLevel"] == "balanced"
    assert body["maxPointsPerPrediction"] == 2500
    assert body["useChatSentiment"] is True
    assert body["useHistoricalOutcomes"] is True
    assert body["useStreamerPerformance"] is True
    assert body["useGlobalPatterns"] is False
    assert body["notificationsEnabled"] is False


async def test_password_is_not_stored_in_plaintext(client, storage, alice):
    account = await storage.get_account_by_username("alice")

    assert account.password_hash != "hunter2"
    assert "hunter2" not in account.password_hash


async def test_register_validation_errors_name_the_field(client):
    response = await client.post("/api/auth/register", json={"username": "", "password": "x"})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation error"
    assert [e["field"] for e in body["errors"]] == ["username"]


async def test_login_with_wrong_password(client, other_client, alice):
    response = await other_client.post(
        "/api/auth/login", json={"username": "alice", "password": "wrong"}
    )

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid username or password"}


async def test_login_with_unknown_username(client):
    response = await client.post("/api/auth/login", json={"username": "ghost", "password": "x"})

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid username or password"}


async def test_login_starts_a_new_session(client, other_client, alice):
    response = await other_client.post(
        "/api/auth/login", json={"username": "alice", "password": "hunter2"}
    )

    assert response.status_code == 200
    assert response.json() == {"id": alice["id"], "username": "alice"}
    assert (await other_client.get("/api/channels")).status_code == 200


async def test_logout_ends_session_and_is_idempotent(client, alice):
    first = await client.post("/api/auth/logout")
    second = await client.post("/api/auth/logout")

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json() == {"message": "Logged out successfully"}
    assert (await client.get("/api/auth/status")).json() == {"isAuthenticated": False}
    assert (await client.get("/api/channels")).status_code == 401


async def test_logout_invalidates_the_old_cookie(app, client, alice):
    token = client.cookies["auth_token"]
    await client.post("/api/auth/logout")

    async with make_client(app) as replay:
        replay.cookies.set("auth_token", token)
        response = await replay.get("/api/channels")

    assert response.status_code == 401


async def test_protected_route_without_cookie(client):
    response = await client.get("/api/channels")

    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized"}


async def test_unauthenticated_beats_validation(client):
    response = await client.post("/api/channels", json={"channelName": 42})

    assert response.status_code == 401


async def test_tampered_cookie_is_rejected(client):
    client.cookies.set("auth_token", "not-a-jwt")

    response = await client.get("/api/dashboard/summary")

    assert response.status_code == 401


async def test_expired_session_is_rejected(app, client, alice):
    # Drop every live session as if the TTL had elapsed
    app.state.sessions._sessions.clear()

    response = await client.get("/api/channels")

    assert response.status_code == 401
