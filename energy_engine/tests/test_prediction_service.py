"""
Tests for PredictionService.

Tests cover:
1. Expected yield of scheduled items
2. Prediction formula and remaining-item filtering
3. Confidence scoring and buckets
4. Recommendations
"""
import pytest
from datetime import timedelta

from energy_engine.schemas import ScheduledItem
from energy_engine.services.prediction_service import PredictionService


@pytest.fixture
def prediction_service(default_config):
    return PredictionService(default_config)


def make_items(now, count, priority="medium"):
    return [
        ScheduledItem(id=str(i), title=f"Task {i}", priority=priority, scheduled_at=now + timedelta(hours=1))
        for i in range(count)
    ]


class TestExpectedYield:
    """Tests for expected_yield"""

    @pytest.mark.parametrize("priority,expected", [
        ("low", 10), ("medium", 20), ("high", 30), ("urgent", 30), (None, 20), ("weird", 20),
    ])
    def test_task_priority(self, priority, expected):
        assert PredictionService.expected_yield(ScheduledItem(priority=priority)) == expected

    def test_energy_level_fallback(self):
        assert PredictionService.expected_yield(ScheduledItem(energy_level="high")) == 30

    def test_event_is_flat(self):
        assert PredictionService.expected_yield(ScheduledItem(kind="event", priority="high")) == 15

    def test_other_kinds(self):
        assert PredictionService.expected_yield(ScheduledItem(kind="milestone")) == 100
        assert PredictionService.expected_yield(ScheduledItem(kind="step")) == 5
        assert PredictionService.expected_yield(ScheduledItem(kind="goal", priority="low")) == 50


class TestPredict:
    """Tests for predict"""

    def test_formula(self, prediction_service, energy_service, fresh_state, now):
        """predicted = round(total + 0.7 × remaining)"""
        state = energy_service.add_energy(fresh_state, "goals", 100, "Goal", now)
        items = make_items(now, 2) + [ScheduledItem(kind="event", scheduled_at=now + timedelta(hours=2))]

        prediction = prediction_service.predict(state, items, None, now)

        assert prediction.remaining_potential == 55
        assert prediction.predicted_energy == 139
        assert prediction.predicted_color_index == 1
        assert prediction.tasks_remaining == 3

    def test_rounds_half_up(self, prediction_service, fresh_state, now):
        """0.7 × 5 = 3.5 rounds to 4"""
        items = [ScheduledItem(kind="step", scheduled_at=now)]
        assert prediction_service.predict(fresh_state, items, None, now).predicted_energy == 4

    def test_ignores_completed_and_other_days(self, prediction_service, fresh_state, now):
        items = [
            ScheduledItem(priority="high", scheduled_at=now, completed=True),
            ScheduledItem(priority="high", scheduled_at=now + timedelta(days=1)),
            ScheduledItem(priority="high"),
            ScheduledItem(priority="high", scheduled_at=now + timedelta(hours=3)),
        ]
        prediction = prediction_service.predict(fresh_state, items, None, now)

        assert prediction.remaining_potential == 30
        assert prediction.tasks_remaining == 1

    def test_default_historical_average(self, prediction_service, fresh_state, now):
        prediction = prediction_service.predict(fresh_state, [], None, now)

        assert prediction.historical_average == 300
        assert prediction.goal_threshold == 300
        assert prediction.on_track_for_goal is False

    def test_historical_average_from_history(self, make_history):
        assert PredictionService.historical_average_from(make_history([200, 400])) == 300
        assert PredictionService.historical_average_from([]) is None


class TestConfidence:
    """Tests for calculate_confidence and confidence_level"""

    def test_minimum_confidence(self, prediction_service, fresh_state, now):
        """No history, no items, 09:00 -> 0.5 (low)"""
        prediction = prediction_service.predict(fresh_state, [], None, now.replace(hour=9))

        assert prediction.confidence == 0.5
        assert prediction.confidence_level == "low"

    def test_maximum_confidence(self, prediction_service, fresh_state, make_history, now):
        """History, 5 items, 19:00 -> capped at 1.0 (high)"""
        evening = now.replace(hour=19)
        state = fresh_state.model_copy(update={"daily_history": make_history([300])})

        prediction = prediction_service.predict(state, make_items(evening, 5), None, evening)

        assert prediction.confidence == 1.0
        assert prediction.confidence_level == "high"

    def test_medium_bucket(self, prediction_service, now):
        """0.5 + 0.1 (afternoon) = 0.6"""
        confidence = prediction_service.calculate_confidence(0, 0, now)
        assert confidence == 0.6
        assert PredictionService.confidence_level(confidence) == "medium"

    def test_sums_are_rounded(self, prediction_service, now):
        """Float error from 0.5 + 0.2 + 0.1 is rounded away"""
        confidence = prediction_service.calculate_confidence(1, 0, now)
        assert confidence == 0.8
        assert PredictionService.confidence_level(confidence) == "high"


class TestRecommendations:
    """Tests for build_recommendations"""

    def test_on_track(self):
        recommendations = PredictionService.build_recommendations(320, 300, 300)
        assert recommendations[0].startswith("On track for Flow")

    def test_achievable(self):
        recommendations = PredictionService.build_recommendations(250, 300, 300)
        assert "3 more medium tasks" in recommendations[0]

    def test_suggest_lower_goal(self):
        """Gap of 300 is out of reach; highest level within +100 is suggested"""
        recommendations = PredictionService.build_recommendations(300, 600, 300)
        assert "Depth (400)" in recommendations[0]

    def test_deterministic(self):
        assert (
            PredictionService.build_recommendations(250, 300, 280)
            == PredictionService.build_recommendations(250, 300, 280)
        )

    def test_status_descriptor(self, prediction_service, fresh_state, now):
        prediction = prediction_service.predict(fresh_state, [], None, now, goal_threshold=0)
        assert PredictionService.prediction_status(prediction)["status"] == "on-track"
