"""Tests for the web API."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from recallkit.core.clock import FixedClock
from recallkit.core.models import Card
from recallkit.core.session import ReviewSession
from recallkit.core.storage import InMemoryCardStore
from recallkit.web import dependencies
from recallkit.web.app import create_app
from recallkit.web.sessions import SessionRegistry

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)
ALICE = {"X-Owner-Id": "alice"}
BOB = {"X-Owner-Id": "bob"}


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def client(tmp_path, clock):
    """Create a test client backed by a temporary database."""
    with patch.dict(
        "os.environ",
        {
            "RECALLKIT_DB_PATH": str(tmp_path / ".recallkit" / "recallkit.db"),
            "RECALLKIT_SESSION_LIMIT": "20",
        },
    ):
        # Clear the lru_cache to pick up new paths
        dependencies.get_settings.cache_clear()
        dependencies.get_store.cache_clear()
        dependencies.get_registry.cache_clear()

        app = create_app()
        app.dependency_overrides[dependencies.get_clock] = lambda: clock
        yield TestClient(app)

        dependencies.get_settings.cache_clear()
        dependencies.get_store.cache_clear()
        dependencies.get_registry.cache_clear()


def _add(client, front="perro", back="dog", headers=ALICE, **extra) -> dict:
    response = client.post("/cards", json={"front": front, "back": back, **extra}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestHealthEndpoint:
    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestCards:
    """Tests for card endpoints."""

    def test_create_card(self, client):
        card = _add(client, path_id="spanish")
        assert card["owner"] == "alice"
        assert card["difficulty"] == 1
        assert card["version"] == 0
        assert card["next_due"] is None
        assert card["path_id"] == "spanish"

    def test_get_card(self, client):
        card = _add(client)
        response = client.get(f"/cards/{card['id']}", headers=ALICE)
        assert response.status_code == 200
        assert response.json()["front"] == "perro"

    def test_get_missing_card(self, client):
        response = client.get("/cards/nope", headers=ALICE)
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_other_owner_gets_404(self, client):
        card = _add(client)
        response = client.get(f"/cards/{card['id']}", headers=BOB)
        assert response.status_code == 404

    def test_owner_header_required(self, client):
        response = client.post("/cards", json={"front": "Q", "back": "A"})
        assert response.status_code == 422

    def test_due_cards(self, client):
        first = _add(client, front="uno")
        second = _add(client, front="dos")
        _add(client, front="tres", headers=BOB)

        response = client.get("/cards/due", headers=ALICE)
        assert response.status_code == 200
        ids = [c["id"] for c in response.json()]
        assert ids == sorted([first["id"], second["id"]])

    def test_due_cards_limit(self, client):
        for i in range(3):
            _add(client, front=f"card {i}")
        response = client.get("/cards/due", params={"limit": 2}, headers=ALICE)
        assert len(response.json()) == 2

    def test_due_cards_bad_limit(self, client):
        response = client.get("/cards/due", params={"limit": 0}, headers=ALICE)
        assert response.status_code == 422


class TestReviewSession:
    """Tests for review session endpoints."""

    def test_empty_session_finishes(self, client):
        response = client.post("/review/sessions", json={}, headers=ALICE)
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "finished"
        assert body["card"] is None
        assert body["queued"] == 0

    def test_back_hidden_until_revealed(self, client):
        _add(client)
        session = client.post("/review/sessions", json={}, headers=ALICE).json()
        assert session["status"] == "active"
        assert session["phase"] == "presenting"
        assert session["card"]["front"] == "perro"
        assert session["card"]["back"] is None

        sid = session["session_id"]
        revealed = client.post(f"/review/sessions/{sid}/reveal", headers=ALICE).json()
        assert revealed["phase"] == "revealed"
        assert revealed["card"]["back"] == "dog"

    def test_grade_before_reveal_conflicts(self, client):
        card = _add(client)
        sid = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]

        response = client.post(
            f"/review/sessions/{sid}/grade", json={"success": True}, headers=ALICE
        )
        assert response.status_code == 409
        assert response.json()["error"] == "InvalidTransition"
        assert client.get(f"/cards/{card['id']}", headers=ALICE).json()["version"] == 0

    def test_full_session(self, client, clock):
        first = _add(client, front="uno")
        second = _add(client, front="dos")
        sid = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]

        client.post(f"/review/sessions/{sid}/reveal", headers=ALICE)
        clock.advance(minutes=5)
        body = client.post(
            f"/review/sessions/{sid}/grade", json={"success": False}, headers=ALICE
        ).json()
        assert body["graded"] == 1
        assert body["phase"] == "presenting"
        assert body["last_graded"]["difficulty"] == 2
        assert body["remaining"] == 1

        client.post(f"/review/sessions/{sid}/reveal", headers=ALICE)
        body = client.post(
            f"/review/sessions/{sid}/grade", json={"success": True}, headers=ALICE
        ).json()
        assert body["status"] == "finished"
        assert body["graded"] == 2
        assert body["succeeded"] == 1

        for card in (first, second):
            stored = client.get(f"/cards/{card['id']}", headers=ALICE).json()
            assert stored["review_count"] == 1
            assert stored["version"] == 1

        graded_first = min(first["id"], second["id"])
        stored = client.get(f"/cards/{graded_first}", headers=ALICE).json()
        expected_due = T0 + timedelta(minutes=5, days=4)
        assert datetime.fromisoformat(stored["next_due"]) == expected_due

    def test_session_limit_and_path(self, client):
        _add(client, front="uno", path_id="spanish")
        _add(client, front="dos", path_id="spanish")
        _add(client, front="un", path_id="french")

        body = client.post(
            "/review/sessions", json={"limit": 1, "path_id": "spanish"}, headers=ALICE
        ).json()
        assert body["queued"] == 1
        assert body["card"]["front"] in ("uno", "dos")

    def test_invalid_limit(self, client):
        response = client.post("/review/sessions", json={"limit": 0}, headers=ALICE)
        assert response.status_code == 422

    def test_version_conflict_then_refresh(self, client):
        card = _add(client)
        one = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]
        two = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]

        client.post(f"/review/sessions/{one}/reveal", headers=ALICE)
        client.post(f"/review/sessions/{one}/grade", json={"success": True}, headers=ALICE)

        client.post(f"/review/sessions/{two}/reveal", headers=ALICE)
        response = client.post(
            f"/review/sessions/{two}/grade", json={"success": False}, headers=ALICE
        )
        assert response.status_code == 409
        assert response.json()["error"] == "ConcurrentModification"
        assert client.get(f"/cards/{card['id']}", headers=ALICE).json()["version"] == 1

        refreshed = client.post(f"/review/sessions/{two}/refresh", headers=ALICE).json()
        assert refreshed["card"]["version"] == 1
        assert refreshed["phase"] == "revealed"

        body = client.post(
            f"/review/sessions/{two}/grade", json={"success": False}, headers=ALICE
        ).json()
        assert body["status"] == "finished"
        assert client.get(f"/cards/{card['id']}", headers=ALICE).json()["version"] == 2

    def test_skip(self, client):
        card = _add(client)
        sid = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]

        body = client.post(f"/review/sessions/{sid}/skip", headers=ALICE).json()
        assert body["status"] == "finished"
        assert body["skipped"] == 1
        assert client.get(f"/cards/{card['id']}", headers=ALICE).json()["version"] == 0

    def test_abandon(self, client):
        card = _add(client)
        sid = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]
        client.post(f"/review/sessions/{sid}/reveal", headers=ALICE)

        response = client.delete(f"/review/sessions/{sid}", headers=ALICE)
        assert response.status_code == 200
        assert response.json()["status"] == "abandoned"
        assert client.get(f"/cards/{card['id']}", headers=ALICE).json()["version"] == 0

        assert client.get(f"/review/sessions/{sid}", headers=ALICE).status_code == 404

    def test_other_owner_cannot_use_session(self, client):
        _add(client)
        sid = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]

        assert client.get(f"/review/sessions/{sid}", headers=BOB).status_code == 404
        assert client.post(f"/review/sessions/{sid}/reveal", headers=BOB).status_code == 404
        assert client.get(f"/review/sessions/{sid}", headers=ALICE).status_code == 200

    def test_unknown_session(self, client):
        response = client.get("/review/sessions/nope", headers=ALICE)
        assert response.status_code == 404


class TestSessionRegistry:
    """Finished sessions do not accumulate in the registry."""

    def test_finished_sessions_released(self, client):
        registry = dependencies.get_registry()
        for _ in range(50):
            body = client.post("/review/sessions", json={}, headers=ALICE).json()
            assert body["status"] == "finished"

        _add(client)
        sid = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]
        assert len(registry) == 1

        client.post(f"/review/sessions/{sid}/reveal", headers=ALICE)
        body = client.post(
            f"/review/sessions/{sid}/grade", json={"success": True}, headers=ALICE
        ).json()
        assert body["status"] == "finished"
        assert body["graded"] == 1
        assert len(registry) == 0
        assert client.get(f"/review/sessions/{sid}", headers=ALICE).status_code == 404

    def test_skipping_last_card_releases_session(self, client):
        _add(client)
        sid = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]
        client.post(f"/review/sessions/{sid}/skip", headers=ALICE)
        assert len(dependencies.get_registry()) == 0

    def test_abandon_releases_session(self, client):
        _add(client)
        sid = client.post("/review/sessions", json={}, headers=ALICE).json()["session_id"]
        client.delete(f"/review/sessions/{sid}", headers=ALICE)
        assert len(dependencies.get_registry()) == 0

    def test_oldest_sessions_evicted_over_capacity(self, clock):
        store = InMemoryCardStore([Card(id="c1", owner="alice", front="Q", back="A")])
        registry = SessionRegistry(max_size=2)
        ids = []
        for _ in range(3):
            session = ReviewSession(store, "alice", clock=clock)
            session.start()
            ids.append(registry.add(session))

        assert len(registry) == 2
        with registry.hold("alice", ids[0]) as session:
            assert session is None
        with registry.hold("alice", ids[2]) as session:
            assert session is not None

    def test_recently_used_session_kept(self, clock):
        store = InMemoryCardStore([Card(id="c1", owner="alice", front="Q", back="A")])
        registry = SessionRegistry(max_size=2)
        ids = []
        for _ in range(2):
            session = ReviewSession(store, "alice", clock=clock)
            session.start()
            ids.append(registry.add(session))

        with registry.hold("alice", ids[0]):
            pass
        registry.add(ReviewSession(store, "alice", clock=clock))

        with registry.hold("alice", ids[0]) as session:
            assert session is not None
        with registry.hold("alice", ids[1]) as session:
            assert session is None

    def test_invalid_max_size(self):
        with pytest.raises(ValueError):
            SessionRegistry(max_size=0)
