from __future__ import annotations

import uuid

import fakeredis
import pytest
import redis
from fastapi.testclient import TestClient

Client = tuple[TestClient, fakeredis.FakeRedis]


def _create(client: TestClient, **overrides: object) -> str:
    body = {"difficulty": "junior", "events_enabled": False, "seed": 7, "profile_id": "api-tester", **overrides}
    res = client.post("/session", json=body)
    assert res.status_code == 201, res.text
    return res.json()["session_id"]


def test_healthcheck(client_and_redis: Client) -> None:
    client, _ = client_and_redis
    assert client.get("/healthcheck").json() == {"status": "ok"}
    assert client.get("/info").json()["name"] == "stay-caffeinated"


def test_session_lifecycle_and_profile(client_and_redis: Client) -> None:
    client, _ = client_and_redis
    sid = _create(client)

    snap = client.get(f"/session/{sid}").json()["snapshot"]
    assert snap["state"]["state"] == "menu"
    assert sid in client.get("/session").json()["sessions"]

    started = client.post(f"/session/{sid}/start").json()["snapshot"]
    assert started["state"]["state"] == "playing"

    frames = client.post(f"/session/{sid}/frames", json={"elapsed_ms": 1_000})
    assert frames.status_code == 200
    assert frames.json()["steps"] > 0
    assert frames.json()["snapshot"]["state"]["real_time_elapsed"] > 0

    drink = client.post(f"/session/{sid}/drink", json={"drink": "coffee"}).json()
    assert drink["result"]["success"] is True
    assert drink["snapshot"]["state"]["stats"]["drinks_consumed"] == 1

    unknown = client.post(f"/session/{sid}/drink", json={"drink": "mate"}).json()
    assert unknown["result"]["success"] is False
    assert "Unknown drink" in unknown["result"]["message"]

    power_up = client.post(f"/session/{sid}/power-up", json={"power_up": "shield"}).json()
    assert power_up["result"]["success"] is True
    assert [p["id"] for p in power_up["snapshot"]["power_ups"]] == ["shield"]

    ended = client.post(f"/session/{sid}/end", json={"outcome": "victory"})
    assert ended.status_code == 200
    result = ended.json()["snapshot"]["result"]
    assert result["outcome"] == "victory"

    scores = client.get("/profile/api-tester/highscores", params={"difficulty": "junior"}).json()["scores"]
    assert len(scores) == 1
    assert scores[0]["score"] == result["breakdown"]["total_score"]

    stats = client.get("/profile/api-tester/statistics").json()
    assert stats["games_played"] == 1
    assert stats["games_won"] == 1
    assert stats["drink_breakdown"] == {"coffee": 1}

    achievements = {a["id"]: a for a in client.get("/profile/api-tester/achievements").json()["achievements"]}
    assert achievements["firstSip"]["unlocked"] is True
    assert achievements["firstSip"]["unlocked_at"] is not None
    assert achievements["caffeineAddict"]["unlocked"] is False
    assert achievements["caffeineAddict"]["progress"] == 1
    assert achievements["caffeineAddict"]["max_progress"] == 50


def test_illegal_transitions_conflict(client_and_redis: Client) -> None:
    client, _ = client_and_redis
    sid = _create(client)

    res = client.post(f"/session/{sid}/pause")
    assert res.status_code == 409
    assert res.json()["detail"] == "Cannot pause while menu"

    client.post(f"/session/{sid}/start")
    assert client.post(f"/session/{sid}/pause").status_code == 200
    assert client.post(f"/session/{sid}/pause").status_code == 409
    assert client.post(f"/session/{sid}/difficulty", json={"difficulty": "founder"}).status_code == 409

    assert client.post(f"/session/{sid}/resume").status_code == 200
    assert client.post(f"/session/{sid}/menu").status_code == 200
    changed = client.post(f"/session/{sid}/difficulty", json={"difficulty": "founder"})
    assert changed.status_code == 200
    assert changed.json()["snapshot"]["state"]["config"]["difficulty"] == "founder"
    assert changed.json()["snapshot"]["optimal_zone"] == {"low": 40.0, "high": 60.0}


def test_forced_event_blocks_drinks(client_and_redis: Client) -> None:
    client, _ = client_and_redis
    sid = _create(client, events_enabled=True)
    client.post(f"/session/{sid}/start")

    forced = client.post(f"/session/{sid}/event", json={"event": "morningMeeting"}).json()
    assert forced["result"]["success"] is True
    assert forced["snapshot"]["active_event"] == "morningMeeting"
    assert forced["snapshot"]["drinks_restricted"] is True

    blocked = client.post(f"/session/{sid}/drink", json={"drink": "tea"}).json()
    assert blocked["result"]["success"] is False


def test_unknown_session_is_404(client_and_redis: Client) -> None:
    client, _ = client_and_redis
    missing = uuid.uuid4()
    assert client.get(f"/session/{missing}").status_code == 404
    assert client.post(f"/session/{missing}/start").status_code == 404
    assert client.post(f"/session/{missing}/drink", json={"drink": "coffee"}).status_code == 404
    assert client.delete(f"/session/{missing}").status_code == 404


def test_delete_session(client_and_redis: Client) -> None:
    client, _ = client_and_redis
    sid = _create(client)
    assert client.delete(f"/session/{sid}").status_code == 204
    assert client.get(f"/session/{sid}").status_code == 404


def test_sessions_share_the_app_redis_client(client_and_redis: Client) -> None:
    client, r = client_and_redis
    assert isinstance(client.app.state.redis, redis.Redis)

    first = client.app.state.sessions.require(uuid.UUID(_create(client)))
    second = client.app.state.sessions.require(uuid.UUID(_create(client)))
    assert first.store._r is r
    assert second.store._r is first.store._r

    # Still writable after the creating requests finished.
    first.start_game()
    first.end_game("passOut")
    assert client.get("/profile/api-tester/statistics").json()["games_played"] == 1


def test_drink_interactions_opt_in(client_and_redis: Client) -> None:
    client, _ = client_and_redis
    sid = _create(client, drink_interactions_enabled=True)
    client.post(f"/session/{sid}/start")

    client.post(f"/session/{sid}/drink", json={"drink": "espresso"})
    boost = client.post(f"/session/{sid}/drink", json={"drink": "energyDrink"}).json()
    assert boost["result"]["caffeine_boost"] == pytest.approx(38)
    assert boost["snapshot"]["drink_synergy"] == pytest.approx(-0.2)
    assert boost["snapshot"]["tolerance"] == pytest.approx(0.9)


def test_request_validation(client_and_redis: Client) -> None:
    client, _ = client_and_redis
    assert client.post("/session", json={"difficulty": "ceo"}).status_code == 422

    sid = _create(client)
    assert client.post(f"/session/{sid}/frames", json={"elapsed_ms": -1}).status_code == 422
    assert client.post(f"/session/{sid}/end", json={"outcome": "promotion"}).status_code == 422


def test_profile_store_failure_is_503(client_and_redis: Client, monkeypatch: pytest.MonkeyPatch) -> None:
    client, r = client_and_redis

    def _boom(*args: object, **kwargs: object) -> None:
        raise redis.ConnectionError("down")

    monkeypatch.setattr(r, "get", _boom)
    res = client.get("/profile/api-tester/statistics")
    assert res.status_code == 503
    assert "read statistics" in res.json()["detail"]
