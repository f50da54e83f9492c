"""Prediction history, settlement and the activity feed."""

import pytest
from conftest import add_channel

from core.errors import Forbidden, NotFound, PredictionAlreadySettled
from services import ActivityService, PredictionService
from shared.models import NewActivity


def bet(channel_id="1001", prediction_id="pred-1", title="Will he clutch?", points=100, option="Yes"):
    return {
        "channelId": channel_id,
        "predictionId": prediction_id,
        "title": title,
        "points": points,
        "chosenOption": option,
    }


async def test_create_prediction_logs_bet(client, alice):
    await add_channel(client, "1001", "shroud")

    response = await client.post("/api/predictions", json=bet(points=250))

    assert response.status_code == 201
    prediction = response.json()
    assert prediction["result"] == "pending"
    assert prediction["outcome"] is None
    assert prediction["pointsWon"] == 0
    assert prediction["channelId"] == "1001"

    latest = (await client.get("/api/activities?limit=1")).json()[0]
    assert latest["type"] == "prediction"
    assert latest["description"] == 'Bet 250 points on "Yes" for "Will he clutch?"'
    assert latest["points"] == -250
    assert latest["channelName"] == "shroud"


async def test_prediction_on_untracked_channel(client, alice):
    response = await client.post("/api/predictions", json=bet(channel_id="5555"))

    assert response.status_code == 201
    latest = (await client.get("/api/activities?limit=1")).json()[0]
    assert latest["channelId"] == "5555"
    assert latest["channelName"] is None


@pytest.mark.parametrize("points", [0, -5])
async def test_prediction_points_must_be_positive(client, alice, points):
    response = await client.post("/api/predictions", json=bet(points=points))

    assert response.status_code == 400
    assert [e["field"] for e in response.json()["errors"]] == ["points"]


async def test_list_predictions_newest_first_with_limit(client, alice):
    for i in range(3):
        await client.post("/api/predictions", json=bet(prediction_id=f"p{i}"))

    everything = (await client.get("/api/predictions")).json()
    limited = (await client.get("/api/predictions?limit=2")).json()

    assert [p["predictionId"] for p in everything] == ["p2", "p1", "p0"]
    assert [p["predictionId"] for p in limited] == ["p2", "p1"]


async def test_list_predictions_for_channel(client, other_client, alice, bob):
    await client.post("/api/predictions", json=bet(channel_id="1001", prediction_id="a"))
    await client.post("/api/predictions", json=bet(channel_id="2002", prediction_id="b"))
    await other_client.post("/api/predictions", json=bet(channel_id="1001", prediction_id="c"))

    response = await client.get("/api/predictions/channel/1001")

    assert [p["predictionId"] for p in response.json()] == ["a"]


@pytest.mark.parametrize("url", ["/api/predictions", "/api/activities"])
async def test_limit_must_be_at_least_one(client, alice, url):
    response = await client.get(f"{url}?limit=0")

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "limit"


async def test_activities_limit_returns_newest(client, storage, alice):
    for i in range(5):
        await storage.create_activity(
            NewActivity(owner_id=alice["id"], type="points", description=f"event {i}", points=i)
        )

    response = await client.get("/api/activities?limit=2")

    assert [a["description"] for a in response.json()] == ["event 4", "event 3"]


async def test_activities_are_private(client, other_client, alice, bob):
    await add_channel(client, "1001", "shroud")

    assert (await other_client.get("/api/activities")).json() == []


# ==================== Settlement ====================


@pytest.fixture
def service(storage):
    return PredictionService(storage, ActivityService(storage))


async def _place(service, account, **overrides):
    values = dict(
        channel_id="1001",
        prediction_id="pred-1",
        title="Will he clutch?",
        points=100,
        chosen_option="Yes",
    )
    values.update(overrides)
    return await service.create(account, **values)


async def test_settle_win_updates_channel(client, storage, service, alice):
    await add_channel(client, "1001", "shroud")
    account = await storage.get_account(alice["id"])
    prediction = await _place(service, account)

    settled = await service.settle(account, prediction.id, "won", outcome="Yes", points_won=180)

    assert settled.result == "won"
    assert settled.outcome == "Yes"
    assert settled.points_won == 180
    channel = await storage.get_channel_by_owner_and_channel_id(account.id, "1001")
    assert channel.predictions_won == 1
    assert channel.total_points == 180

    latest = (await storage.list_activities(account.id, 1))[0]
    assert latest.type == "prediction_won"
    assert latest.points == 180


async def test_settle_loss_updates_channel(client, storage, service, alice):
    await add_channel(client, "1001", "shroud")
    account = await storage.get_account(alice["id"])
    prediction = await _place(service, account)

    await service.settle(account, prediction.id, "lost", outcome="No")

    channel = await storage.get_channel_by_owner_and_channel_id(account.id, "1001")
    assert channel.predictions_lost == 1
    assert channel.total_points == 0
    latest = (await storage.list_activities(account.id, 1))[0]
    assert latest.type == "prediction_lost"
    assert latest.points is None


async def test_settle_twice_fails(storage, service, alice):
    account = await storage.get_account(alice["id"])
    prediction = await _place(service, account)
    await service.settle(account, prediction.id, "lost")

    with pytest.raises(PredictionAlreadySettled):
        await service.settle(account, prediction.id, "won", points_won=10)


async def test_settle_checks_ownership(storage, service, alice, bob):
    owner = await storage.get_account(alice["id"])
    intruder = await storage.get_account(bob["id"])
    prediction = await _place(service, owner)

    with pytest.raises(Forbidden):
        await service.settle(intruder, prediction.id, "won")
    with pytest.raises(NotFound):
        await service.settle(owner, 9999, "won")

    assert (await storage.get_prediction(prediction.id)).result == "pending"


async def test_settle_rejects_unknown_result(storage, service, alice):
    account = await storage.get_account(alice["id"])
    prediction = await _place(service, account)

    with pytest.raises(ValueError):
        await service.settle(account, prediction.id, "pending")
