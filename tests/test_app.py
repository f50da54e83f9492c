"""Service endpoints, error rendering and app wiring."""

from conftest import make_client

from app import create_app


async def test_service_endpoints(client):
    root = await client.get("/")
    health = await client.get("/health")
    status = await client.get("/status")
    ping = await client.get("/ping")

    assert root.json()["status"] == "running"
    assert health.json()["status"] == "healthy"
    assert status.json()["storage"] == "memory"
    assert status.json()["storage_ok"] is True
    assert ping.text == "pong"


async def test_unhandled_error_is_generic_500(app):
    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internal detail")

    async with make_client(app, raise_app_exceptions=False) as client:
        response = await client.get("/boom")

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}
    assert "secret" not in response.text


async def test_unknown_route_is_404(client):
    response = await client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"message": "Not Found"}


async def test_storage_not_ready_before_database_connects(settings, twitch_api):
    settings = settings.model_copy(update={"database_url": "postgresql://nowhere/db"})
    app = create_app(settings=settings, twitch_api=twitch_api)

    async with make_client(app) as client:
        response = await client.post(
            "/api/auth/register", json={"username": "alice", "password": "pw"}
        )
        status = await client.get("/status")

    assert response.status_code == 503
    assert response.json() == {"message": "Database not ready"}
    assert status.json()["storage"] is None


async def test_cors_allows_frontend_with_credentials(client):
    response = await client.options(
        "/api/channels",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert response.headers["access-control-allow-credentials"] == "true"
