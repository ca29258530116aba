"""Tests for the HTTP API using an in-memory store."""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from socialgraph import api
from socialgraph.api import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("SOCIALGRAPH_STORE_BACKEND", "memory")
    with TestClient(app) as test_client:
        yield test_client


def register(client, uid: str, username: str):
    response = client.post("/api/profiles", json={"uid": uid, "username": username})
    assert response.status_code == 201
    return response.json()


class TestHealth:
    """Test the health endpoint."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestProfilesEndpoints:
    """Test profile creation, lookup and edits."""

    def test_register_and_get(self, client):
        created = register(client, "A", "alice")
        assert created["display_name"] == "alice"
        assert created["online"] is True
        assert created["last_seen_label"] == "Online now"

        response = client.get("/api/profiles/A")
        assert response.status_code == 200
        assert response.json()["uid"] == "A"

    def test_register_twice_is_bad_request(self, client):
        register(client, "A", "alice")
        response = client.post("/api/profiles", json={"uid": "A"})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidOperation"

    def test_missing_profile_is_404(self, client):
        response = client.get("/api/profiles/ghost")
        assert response.status_code == 404

    def test_update(self, client):
        register(client, "A", "alice")
        response = client.put(
            "/api/profiles/A",
            json={"username": "Alice", "hobbies": "chess, go", "age": 30},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["username"] == "Alice"
        assert body["hobbies"] == ["chess", "go"]

    def test_update_blank_username_rejected(self, client):
        register(client, "A", "alice")
        response = client.put("/api/profiles/A", json={"username": "   "})
        assert response.status_code == 422

    def test_update_missing_profile(self, client):
        response = client.put("/api/profiles/ghost", json={"username": "x"})
        assert response.status_code == 404


class TestGraphEndpoints:
    """Test follow, unfollow and follow lists."""

    def test_follow_unfollow(self, client):
        register(client, "A", "alice")
        register(client, "B", "bob")

        response = client.post("/api/follow", json={"actor_id": "A", "target_id": "B"})
        assert response.json() == {
            "actor_id": "A", "target_id": "B", "following": True, "changed": True,
        }
        assert client.get("/api/profiles/B").json()["followers_count"] == 1

        again = client.post("/api/follow", json={"actor_id": "A", "target_id": "B"})
        assert again.json()["changed"] is False

        response = client.post("/api/unfollow", json={"actor_id": "A", "target_id": "B"})
        assert response.json()["changed"] is True
        assert client.get("/api/profiles/B").json()["followers_count"] == 0

    def test_self_follow_is_bad_request(self, client):
        response = client.post("/api/follow", json={"actor_id": "A", "target_id": "A"})
        assert response.status_code == 400

    def test_follow_lists(self, client):
        register(client, "A", "alice")
        register(client, "B", "bob")
        client.post("/api/follow", json={"actor_id": "A", "target_id": "B"})

        following = client.get("/api/users/A/following").json()
        followers = client.get("/api/users/B/followers").json()

        assert [p["uid"] for p in following["profiles"]] == ["B"]
        assert [p["uid"] for p in followers["profiles"]] == ["A"]

    def test_unknown_direction_rejected(self, client):
        assert client.get("/api/users/A/sideways").status_code == 422

    def test_reconcile(self, client):
        register(client, "A", "alice")
        response = client.post("/api/users/A/reconcile")
        assert response.status_code == 200
        assert response.json()["following_count"] == 0


class TestFeedEndpoint:
    """Test the discovery feed."""

    def test_feed_excludes_viewer_and_limits(self, client):
        for uid in ("A", "B", "C"):
            register(client, uid, uid.lower())

        body = client.get("/api/feed/A", params={"limit": 1}).json()

        assert len(body["profiles"]) == 1
        assert body["profiles"][0]["uid"] != "A"


class TestPresenceWindow:
    """Profile cards use the configured online window."""

    def test_card_online_within_configured_window(self, monkeypatch):
        monkeypatch.setenv("SOCIALGRAPH_STORE_BACKEND", "memory")
        monkeypatch.setenv("SOCIALGRAPH_ONLINE_WINDOW_SECONDS", "3600")
        last_seen = (datetime.now(timezone.utc) - timedelta(minutes=30)).isoformat()

        with TestClient(app) as client:
            client.portal.call(
                api._client.store.set,
                "users/B",
                {"username": "bob", "isOnline": False, "lastSeenAt": last_seen},
            )
            card = client.get("/api/profiles/B").json()

        assert card["online"] is True
        assert card["last_seen_label"] == "Online now"

    def test_card_offline_outside_default_window(self, client):
        last_seen = (datetime.now(timezone.utc) - timedelta(minutes=30)).isoformat()
        client.portal.call(
            api._client.store.set,
            "users/B",
            {"username": "bob", "isOnline": False, "lastSeenAt": last_seen},
        )

        card = client.get("/api/profiles/B").json()

        assert card["online"] is False
        assert card["last_seen_label"] == "Last seen 30m ago"
