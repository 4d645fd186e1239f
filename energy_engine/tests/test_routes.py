"""
Tests for the energy HTTP routes.
"""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from energy_engine.routes import get_engine, router
from energy_engine.services.engine_service import EnergyEngine

API_KEY = "test-key"


@pytest.fixture
def client(session_factory, monkeypatch):
    monkeypatch.setenv("ENERGY_ENGINE_API_KEY", API_KEY)

    app = FastAPI()
    app.include_router(router)
    engine = EnergyEngine(session_factory)
    app.dependency_overrides[get_engine] = lambda: engine

    with TestClient(app) as test_client:
        test_client.headers.update({"X-API-Key": API_KEY})
        yield test_client


class TestAuth:
    """Tests for API key protection"""

    def test_missing_key(self, client):
        response = client.get("/api/energy", headers={"X-API-Key": ""})
        assert response.status_code == 401

    def test_wrong_key(self, client):
        response = client.get("/api/energy", headers={"X-API-Key": "nope"})
        assert response.status_code == 401


class TestStateRoutes:
    """Tests for state, completions and views"""

    def test_get_state(self, client):
        response = client.get("/api/energy/state")

        assert response.status_code == 200
        body = response.json()
        assert body["total_energy"] == 0
        assert body["color_index"] == 0
        assert body["current_color"]["name"] == "Spark"

    def test_record_completion(self, client):
        response = client.post(
            "/api/energy/completions",
            json={"source": "tasks", "title": "Write report", "level": "high"},
        )

        assert response.status_code == 200
        assert response.json()["state"]["total_energy"] == 30

    def test_unknown_source_rejected(self, client):
        response = client.post("/api/energy/completions", json={"source": "karma", "title": "Nope"})
        assert response.status_code == 422

    def test_toggle_display_mode(self, client):
        response = client.post("/api/energy/display-mode")
        assert response.json()["display_mode"] == "aura"

    def test_breakdown(self, client):
        client.post("/api/energy/completions", json={"source": "health", "title": "Water", "level": "hydration"})

        body = client.get("/api/energy/breakdown").json()

        assert body["summary"]["total_actions"] == 1
        assert body["segments"][0]["source"] == "health"

    def test_resonance(self, client):
        body = client.get("/api/energy/resonance").json()
        assert body["completed_today"] == 0
        assert body["in_harmony"] is False

    def test_signals(self, client):
        client.post("/api/energy/completions", json={"source": "goals", "title": "Goal", "level": "large"})

        signals = client.get("/api/energy/signals").json()

        assert "level_up" in [signal["kind"] for signal in signals]
        assert client.get("/api/energy/signals").json() == []


class TestPredictionRoutes:
    """Tests for prediction routes"""

    def test_empty_schedule(self, client):
        body = client.post("/api/energy/prediction", json={}).json()

        assert body["predicted_energy"] == 0
        assert body["historical_average"] == 300

    def test_status(self, client):
        body = client.post("/api/energy/prediction/status", json={"goal_threshold": 0}).json()
        assert body["status"] == "on-track"


class TestDifficultyRoutes:
    """Tests for difficulty routes"""

    def test_get_difficulty(self, client):
        body = client.get("/api/energy/difficulty").json()

        assert body["current_tier"]["key"] == "normal"
        assert body["performance"]["avg_color_level"] == 2.0

    def test_set_difficulty(self, client):
        response = client.put("/api/energy/difficulty", json={"tier": "hard"})

        assert response.status_code == 200
        assert response.json()["current_tier"]["multiplier"] == 1.2

    def test_set_invalid_difficulty(self, client):
        response = client.put("/api/energy/difficulty", json={"tier": "legendary"})

        assert response.status_code == 400
        assert "legendary" in response.json()["detail"]

    def test_reset_difficulty(self, client):
        client.put("/api/energy/difficulty", json={"tier": "expert"})
        body = client.post("/api/energy/difficulty/reset").json()
        assert body["current_tier"]["key"] == "normal"


class TestCalibrationRoutes:
    """Tests for calibration routes"""

    def test_profile_starts_inactive(self, client):
        body = client.get("/api/energy/calibration").json()

        assert body["active"] is False
        assert body["acrophase"] == 10.5

    def test_add_sample(self, client):
        response = client.post(
            "/api/energy/calibration/samples",
            json={"timestamp": "2026-03-10T09:30:00Z", "task_duration": 45, "resonance_outcome": 80},
        )

        assert response.status_code == 200
        assert response.json()["sample_count"] == 1

    def test_curve(self, client):
        curve = client.get("/api/energy/calibration/curve").json()
        assert len(curve) == 24

    def test_timing_feedback(self, client):
        client.post(
            "/api/energy/calibration/samples",
            json={"timestamp": "2026-03-10T09:30:00Z", "resonance_outcome": 80, "concurrent_tasks": 2},
        )

        response = client.post("/api/energy/calibration/feedback", json={"rating": 4})

        assert response.status_code == 200
        assert response.json()["avg_timing_rating"] == 4.0

    def test_timing_feedback_out_of_range(self, client):
        response = client.post("/api/energy/calibration/feedback", json={"rating": 7})
        assert response.status_code == 422
