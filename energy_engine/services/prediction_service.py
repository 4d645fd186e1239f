"""
End-of-day prediction service.
Forecasts the day's final energy from the current total plus the expected yield
of scheduled items that are still open.
"""
import math
from datetime import datetime
from typing import List, Optional

from energy_engine.colors import color_index_of, color_level
from energy_engine.constants import (
    COLOR_THRESHOLDS,
    CONFIDENCE_BASE,
    CONFIDENCE_CAP,
    CONFIDENCE_HIGH,
    CONFIDENCE_MEDIUM,
    DEFAULT_GOAL_THRESHOLD,
    DEFAULT_HISTORICAL_AVERAGE,
    EVENT_ENERGY,
    GOAL_ENERGY,
    MAX_ACHIEVABLE_TASKS,
    MILESTONE_ENERGY,
    PREDICTION_COMPLETION_PERCENT,
    STEP_ENERGY,
    TASK_ENERGY,
)
from energy_engine.schemas import (
    DailyHistorySnapshot,
    EnergyState,
    EngineConfig,
    Prediction,
    ScheduledItem,
)
from energy_engine.services.date_service import DateService

PRIORITY_ALIASES = {"urgent": "high"}
GOAL_SIZE_BY_PRIORITY = {"low": "small", "medium": "medium", "high": "large"}


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero for positives"""
    return math.floor(value + 0.5)


class PredictionService:
    """Service for end-of-day energy predictions"""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    @staticmethod
    def expected_yield(item: ScheduledItem) -> int:
        """
        Base energy an open item would award on completion.

        Tasks are keyed by priority (falling back to energy level);
        events contribute a flat yield.
        """
        if item.kind == "event":
            return EVENT_ENERGY
        if item.kind == "milestone":
            return MILESTONE_ENERGY
        if item.kind == "step":
            return STEP_ENERGY

        level = (item.priority or item.energy_level or "medium").lower()
        level = PRIORITY_ALIASES.get(level, level)
        if level not in TASK_ENERGY:
            level = "medium"

        if item.kind == "goal":
            return GOAL_ENERGY[GOAL_SIZE_BY_PRIORITY[level]]
        return TASK_ENERGY[level]

    def remaining_items(self, items: List[ScheduledItem], now: datetime) -> List[ScheduledItem]:
        """Open items with a scheduled time on now's local day"""
        today = DateService.local_date(now, self.config.timezone)
        return [
            item for item in items
            if not item.completed
            and item.scheduled_at is not None
            and DateService.local_date(item.scheduled_at, self.config.timezone) == today
        ]

    @staticmethod
    def historical_average_from(history: List[DailyHistorySnapshot]) -> Optional[float]:
        """Mean daily total over recorded history, None when empty"""
        if not history:
            return None
        return sum(day.total_energy for day in history) / len(history)

    def calculate_confidence(self, history_days: int, remaining_count: int, now: datetime) -> float:
        """
        Additive confidence score, capped at 1.0.

        Base 0.5; +0.2 with any history; +0.2 with 3+ open items (+0.1
        more at 5+); +0.1 from noon (+0.1 more from 18:00).
        """
        confidence = CONFIDENCE_BASE
        if history_days >= 1:
            confidence += 0.2
        if remaining_count >= 3:
            confidence += 0.2
        if remaining_count >= 5:
            confidence += 0.1

        hour = DateService.local_hour(now, self.config.timezone)
        if hour >= 12:
            confidence += 0.1
        if hour >= 18:
            confidence += 0.1

        return round(min(CONFIDENCE_CAP, confidence), 2)

    @staticmethod
    def confidence_level(confidence: float) -> str:
        """Bucket confidence: high >= 0.7, medium above the base, else low"""
        if confidence >= CONFIDENCE_HIGH:
            return "high"
        if confidence > CONFIDENCE_MEDIUM:
            return "medium"
        return "low"

    @staticmethod
    def build_recommendations(
        predicted_energy: int,
        goal_threshold: int,
        historical_average: float
    ) -> List[str]:
        """
        Deterministic advice from the gap between prediction and goal.

        On track, achievable with N medium tasks, or suggest a lower goal.
        """
        recommendations = []
        gap = goal_threshold - predicted_energy
        goal_name = color_level(color_index_of(goal_threshold)).get("name")

        if gap <= 0:
            recommendations.append(f"On track for {goal_name}. Keep your current pace.")
        else:
            tasks_needed = math.ceil(gap / TASK_ENERGY["medium"])
            if tasks_needed <= MAX_ACHIEVABLE_TASKS:
                plural = "task" if tasks_needed == 1 else "tasks"
                recommendations.append(
                    f"{goal_name} is achievable: complete {tasks_needed} more medium {plural}."
                )
            else:
                reachable = predicted_energy + MAX_ACHIEVABLE_TASKS * TASK_ENERGY["medium"]
                lower = max(t for t in COLOR_THRESHOLDS if t <= reachable)
                lower_name = color_level(color_index_of(lower)).get("name")
                recommendations.append(
                    f"{goal_name} looks out of reach today. Aim for {lower_name} ({lower}) instead."
                )

        if predicted_energy < historical_average:
            recommendations.append("You're tracking below your usual day. Schedule a quick win.")
        elif predicted_energy > historical_average:
            recommendations.append("You're tracking above your usual day.")

        return recommendations

    def predict(
        self,
        state: EnergyState,
        scheduled_items: List[ScheduledItem],
        historical_average: Optional[float],
        now: datetime,
        goal_threshold: Optional[int] = None
    ) -> Prediction:
        """
        Forecast the day's final energy.

        Formula: predicted = round(total + 0.7 × remaining_potential)

        Args:
            state: Current ledger
            scheduled_items: Read-only view of the day's schedule
            historical_average: Mean daily total (defaults to 300 when absent)
            now: Current instant
            goal_threshold: Energy the user is aiming for (defaults to Green)

        Returns:
            Prediction record
        """
        if historical_average is None:
            historical_average = DEFAULT_HISTORICAL_AVERAGE
        if goal_threshold is None:
            goal_threshold = DEFAULT_GOAL_THRESHOLD

        remaining = self.remaining_items(scheduled_items, now)
        remaining_potential = sum(self.expected_yield(item) for item in remaining)
        predicted_energy = round_half_up(
            state.total_energy + remaining_potential * PREDICTION_COMPLETION_PERCENT / 100
        )
        predicted_index = color_index_of(predicted_energy)

        confidence = self.calculate_confidence(len(state.daily_history), len(remaining), now)

        return Prediction(
            current_energy=state.total_energy,
            remaining_potential=remaining_potential,
            predicted_energy=predicted_energy,
            predicted_color_index=predicted_index,
            predicted_color=color_level(predicted_index),
            confidence=confidence,
            confidence_level=self.confidence_level(confidence),
            historical_average=historical_average,
            goal_threshold=goal_threshold,
            on_track_for_goal=predicted_energy >= goal_threshold,
            tasks_remaining=len(remaining),
            hours_remaining=DateService.hours_until_local_midnight(now, self.config.timezone),
            recommendations=self.build_recommendations(
                predicted_energy, goal_threshold, historical_average
            ),
        )

    @staticmethod
    def prediction_status(prediction: Prediction) -> dict:
        """Ahead / on-track / behind descriptor for rendering"""
        margin = prediction.predicted_energy - prediction.goal_threshold
        if margin >= 100:
            return {"status": "ahead", "message": "Ahead of your goal. Great momentum!"}
        if margin >= 0:
            return {"status": "on-track", "message": "Right on track for your goal."}
        return {"status": "behind", "message": f"{-margin} energy short of your goal at this pace."}
