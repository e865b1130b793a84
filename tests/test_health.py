"""
Tests for the diagnostics and push-ingest endpoints
"""
import pytest
from fastapi.testclient import TestClient

from config.settings import Settings
from marketsync.cache.keys import Domain
from marketsync.main import create_app
from marketsync.runtime import build_runtime


@pytest.fixture
def runtime(tmp_path):
    settings = Settings(
        preferences_database_url=f"sqlite:///{tmp_path / 'prefs.db'}",
        change_feed_url=None,
    )
    runtime = build_runtime(settings)
    yield runtime
    runtime.preferences.close()


@pytest.fixture
def client(runtime):
    return TestClient(create_app(runtime))


def test_health_endpoint_returns_200(client):
    """Test that /health returns HTTP 200"""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_endpoint_returns_ok_status(client):
    """Test that /health returns status: ok"""
    assert client.get("/health").json()["status"] == "ok"


def test_cache_stats(client, runtime):
    runtime.store.set("home:events:upcoming:5", [])
    data = client.get("/cache/stats").json()
    assert data["store"]["entries"] == 1
    assert data["misses"] == 0


def test_invalidate_by_key(client, runtime):
    runtime.store.set("detail:events:9", {})
    runtime.store.set("detail:events:9:attendees", [])
    runtime.store.set("detail:events:90", {})

    response = client.post("/cache/invalidate", json={"key": "detail:events:9"})

    assert response.status_code == 200
    assert response.json() == {"invalidated": 2}
    assert runtime.store.keys() == ["detail:events:90"]


def test_invalidate_by_domain_and_scope(client, runtime):
    runtime.store.set("home:listings:featured", [])
    runtime.store.set("detail:listings:1", {})

    response = client.post("/cache/invalidate", json={"domain": "listings", "scope": "detail"})

    assert response.json() == {"invalidated": 1}
    assert runtime.store.has("home:listings:featured")


@pytest.mark.parametrize("body", [{"domain": "weather"}, {}])
def test_invalidate_rejects_bad_requests(client, body):
    assert client.post("/cache/invalidate", json=body).status_code == 422


def test_live_notify_invalidates_and_delivers(client, runtime):
    runtime.store.set("explore:events:all", [])
    received = []
    runtime.bridge.subscribe_to_domain_change(Domain.RSVPS, received.append)

    response = client.post(
        "/live/notify",
        json={"domain": "rsvps", "change_type": "INSERT", "entity_id": "9", "user_id": "u1"},
    )

    assert response.status_code == 200
    assert response.json() == {"delivered": 1}
    assert received[0].entity_id == "9"
    assert not runtime.store.has("explore:events:all")


def test_live_notify_rejects_unknown_domain(client):
    response = client.post("/live/notify", json={"domain": "weather"})
    assert response.status_code == 422
