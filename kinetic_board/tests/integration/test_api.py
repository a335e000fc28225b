"""
KINETIC BOARD - Integration Tests for the HTTP API
"""
import pytest
from fastapi.testclient import TestClient

from kinetic_board.api.app import create_app
from kinetic_board.errors import StorageUnavailableError
from kinetic_board.service import LeaderboardService
from kinetic_board.storage.memory import InMemoryStore


class UnavailableStore(InMemoryStore):
    async def read_leaderboard(self, tag):
        raise StorageUnavailableError(tag, "read", "disk gone")


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


def snapshot_payload(symbol="AAPL", timestamp_ms=0, pct_change=0.12, volume=1000.0):
    return {"symbol": symbol, "timestampMs": timestamp_ms, "pctChange": pct_change, "volume": volume}


# ─── Health Tests ───────────────────────────────────────────────

class TestHealth:
    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"]["runs"] == 0
        assert "persist_leaderboard" in body["service"]["stages"]


# ─── Leaderboard Endpoint Tests ─────────────────────────────────

class TestLeaderboardEndpoints:
    def test_ingest_and_read(self, client):
        response = client.post(
            "/api/v1/leaderboards/gainers/snapshots",
            json={
                "snapshots": [
                    snapshot_payload(timestamp_ms=0, pct_change=0.12, volume=1000.0),
                    snapshot_payload(timestamp_ms=600_000, pct_change=0.20, volume=1400.0),
                ],
                "correlation_id": "req-1",
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["correlation_id"] == "req-1"
        assert body["summary"]["total"] == 1
        entry = body["leaderboard"][0]
        assert entry["symbol"] == "AAPL"
        assert entry["warmingUp"] is False
        assert entry["pctVelocity"] == pytest.approx(0.08)

        response = client.get("/api/v1/leaderboards/gainers")
        assert response.status_code == 200
        assert response.json()["total"] == 1

    def test_preview_does_not_persist(self, client):
        response = client.post(
            "/api/v1/leaderboards/gainers/snapshots",
            json={"snapshots": [snapshot_payload()], "preview": True},
        )
        assert response.status_code == 200
        assert len(response.json()["leaderboard"]) == 1
        assert client.get("/api/v1/leaderboards/gainers").json()["total"] == 0

    def test_empty_batch_is_rejected(self, client):
        response = client.post("/api/v1/leaderboards/gainers/snapshots", json={"snapshots": []})
        assert response.status_code == 422

    def test_unknown_tag_is_empty(self, client):
        body = client.get("/api/v1/leaderboards/nothing-here").json()
        assert body == {"tag": "nothing-here", "total": 0, "leaderboard": []}


# ─── Error Mapping Tests ────────────────────────────────────────

class TestErrorMapping:
    @pytest.fixture
    def broken_client(self, small_window_settings):
        service = LeaderboardService.from_settings(small_window_settings, store=UnavailableStore())
        return TestClient(create_app(service))

    def test_ingest_with_unavailable_store(self, broken_client):
        response = broken_client.post(
            "/api/v1/leaderboards/gainers/snapshots",
            json={"snapshots": [snapshot_payload()], "correlation_id": "req-9"},
        )
        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["stage"] == "merge"
        assert detail["correlation_id"] == "req-9"
        assert detail["tag"] == "gainers"

    def test_read_with_unavailable_store(self, broken_client):
        assert broken_client.get("/api/v1/leaderboards/gainers").status_code == 503
