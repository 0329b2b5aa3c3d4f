"""Tests for the result store and the read-only API over it."""
import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from api.state import AppState
from nba_props.database.store import BATCHES, GAMES, LATEST, SLIPS


class TestResultStore:
    """Collection/key JSON documents."""

    def test_put_and_get(self, store):
        store.put(GAMES, "evt-1", {"event_id": "evt-1", "status": "ok"})

        assert store.get(GAMES, "evt-1") == {"event_id": "evt-1", "status": "ok"}
        assert store.get(GAMES, "missing") is None

    def test_put_replaces(self, store):
        store.put(SLIPS, LATEST, {"slips": []})
        store.put(SLIPS, LATEST, {"slips": [{"name": "LOCK"}]})

        assert store.get(SLIPS, LATEST) == {"slips": [{"name": "LOCK"}]}
        assert store.keys(SLIPS) == [LATEST]

    def test_collections_are_separate(self, store):
        store.put(GAMES, LATEST, {"a": 1})
        store.put(BATCHES, LATEST, {"b": 2})

        assert store.get(GAMES, LATEST) == {"a": 1}
        assert len(store.list(BATCHES)) == 1

    def test_list_limit(self, store):
        for i in range(5):
            store.put(GAMES, f"evt-{i}", {"event_id": f"evt-{i}"})

        assert len(store.list(GAMES)) == 5
        assert len(store.list(GAMES, limit=2)) == 2

    def test_delete(self, store):
        store.put(GAMES, "evt-1", {"event_id": "evt-1"})

        assert store.delete(GAMES, "evt-1")
        assert not store.delete(GAMES, "evt-1")
        assert store.get(GAMES, "evt-1") is None


def _game(event_id: str, status: str, legs: int = 0) -> dict:
    return {
        "event_id": event_id,
        "status": status,
        "teams": {"home": "Boston Celtics", "away": "New York Knicks"},
        "game_time": "2025-01-15T00:30:00+00:00",
        "health": {"overall": "healthy"},
        "diagnostics": {"edge_results": 3, "stack_legs": legs},
    }


@pytest.fixture
def seeded(store):
    store.put(GAMES, "evt-1", _game("evt-1", "ok", legs=4))
    store.put(GAMES, "evt-2", _game("evt-2", "empty"))
    store.put(
        SLIPS,
        LATEST,
        {
            "slips": [{"name": "LOCK", "legs": []}, {"name": "VALUE", "legs": []}],
            "leg_pool": 9,
            "created_at": "2025-01-14T18:00:00",
        },
    )
    store.put(BATCHES, LATEST, {"summary": {"ok": 1, "circuit_broken": False}})
    return store


@pytest.fixture
def client(seeded):
    with TestClient(create_app(AppState(store=seeded, settings=object()))) as client:
        yield client


class TestHealthEndpoints:
    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["last_batch"]["ok"] == 1

    def test_breaker_makes_health_degraded(self, client, seeded):
        seeded.put(BATCHES, LATEST, {"summary": {"ok": 0, "circuit_broken": True}})

        assert client.get("/api/health").json()["status"] == "degraded"

    def test_liveness(self, client):
        assert client.get("/api/health/live").json()["alive"] is True

    def test_state_reports_last_batch(self, seeded):
        status = AppState(store=seeded, settings=object()).get_health_status()

        assert status["last_batch"] == {"ok": 1, "circuit_broken": False}
        assert status["store"]

    def test_state_without_store(self):
        assert AppState().get_health_status()["last_batch"] is None


class TestGamesEndpoints:
    def test_list_games(self, client):
        body = client.get("/api/games").json()

        assert body["count"] == 2
        assert {game["event_id"] for game in body["games"]} == {"evt-1", "evt-2"}

    def test_filter_by_status(self, client):
        body = client.get("/api/games", params={"status": "ok"}).json()

        assert body["count"] == 1
        assert body["games"][0]["stack_legs"] == 4
        assert body["games"][0]["home_team"] == "Boston Celtics"

    def test_get_game(self, client):
        body = client.get("/api/games/evt-2").json()

        assert body["status"] == "empty"

    def test_missing_game(self, client):
        assert client.get("/api/games/nope").status_code == 404


class TestSlipsEndpoint:
    def test_latest_slips(self, client):
        body = client.get("/api/slips").json()

        assert body["count"] == 2
        assert body["created_at"] == "2025-01-14T18:00:00"

    def test_filter_by_name(self, client):
        body = client.get("/api/slips", params={"name": "lock"}).json()

        assert [slip["name"] for slip in body["slips"]] == ["LOCK"]

    def test_no_slips_yet(self, store):
        with TestClient(create_app(AppState(store=store, settings=object()))) as client:
            body = client.get("/api/slips").json()

        assert body == {"count": 0, "slips": [], "created_at": None}
