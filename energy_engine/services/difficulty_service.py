"""
Adaptive difficulty service.
Moves the user between difficulty tiers based on trailing color-level performance.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional

from energy_engine.colors import color_index_of
from energy_engine.constants import (
    COLOR_THRESHOLDS,
    DEFAULT_AVG_COLOR_LEVEL,
    DEMOTE_LEVEL,
    DIFFICULTY_EASY,
    DIFFICULTY_EXPERT,
    DIFFICULTY_NORMAL,
    DIFFICULTY_ORDER,
    DIFFICULTY_TIERS,
    EASY_PROMOTE_LEVEL,
    PROMOTE_LEVEL,
)
from energy_engine.exceptions import InvalidDifficultyTierException
from energy_engine.schemas import (
    DailyHistorySnapshot,
    DifficultyPerformance,
    DifficultyResponse,
    DifficultyState,
    DifficultyTier,
    EngineConfig,
)
from energy_engine.services.date_service import DateService

logger = logging.getLogger("energy_engine.difficulty")

PERFORMANCE_FEEDBACK = {
    "excellent": "Outstanding performance! You're consistently reaching high color levels.",
    "good": "Great work! You're maintaining solid energy levels.",
    "fair": "You're making progress. Keep building momentum!",
    "needs-improvement": "Consider focusing on completing more tasks to build energy.",
}


class DifficultyService:
    """Service for adaptive difficulty tiers"""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def create_initial_state(self, now: datetime) -> DifficultyState:
        return DifficultyState(current_tier=DIFFICULTY_NORMAL, last_evaluation=now)

    @staticmethod
    def validate_tier(tier: str) -> str:
        """
        Normalize a tier name.

        Raises:
            InvalidDifficultyTierException: If tier is not one of the four tiers
        """
        normalized = (tier or "").strip().lower()
        if normalized not in DIFFICULTY_TIERS:
            raise InvalidDifficultyTierException(tier)
        return normalized

    @staticmethod
    def thresholds_for(tier: str) -> List[int]:
        """Base color thresholds scaled by the tier multiplier (floored)"""
        multiplier = DIFFICULTY_TIERS[tier][1]
        return [math.floor(threshold * multiplier) for threshold in COLOR_THRESHOLDS]

    @staticmethod
    def tier_info(tier: str) -> DifficultyTier:
        label, multiplier, description = DIFFICULTY_TIERS[tier]
        return DifficultyTier(
            key=tier,
            name=label,
            multiplier=multiplier,
            description=description,
            color_thresholds=DifficultyService.thresholds_for(tier),
        )

    def window(self, history: List[DailyHistorySnapshot], now: datetime) -> List[DailyHistorySnapshot]:
        """History days inside the trailing evaluation window (today excluded)"""
        today = DateService.local_date(now, self.config.timezone)
        window_start = today - timedelta(days=self.config.evaluation_days)
        return [day for day in history if window_start <= day.date < today]

    @staticmethod
    def avg_color_level(days: List[DailyHistorySnapshot]) -> float:
        """
        Mean color level over the given days, using the unscaled thresholds.

        Falls back to a baseline of 2 when there is no history.
        """
        if not days:
            return DEFAULT_AVG_COLOR_LEVEL
        levels = [color_index_of(day.total_energy, COLOR_THRESHOLDS) for day in days]
        return sum(levels) / len(levels)

    @staticmethod
    def recommended_tier(current_tier: str, avg_color_level: float) -> str:
        """
        Adjacent-only transition with hysteresis.

        Promote at >= 4.5 (easy promotes already at >= 3.5), demote at <= 1.5.
        """
        index = DIFFICULTY_ORDER.index(current_tier)

        if avg_color_level >= PROMOTE_LEVEL and current_tier != DIFFICULTY_EXPERT:
            return DIFFICULTY_ORDER[index + 1]
        if avg_color_level >= EASY_PROMOTE_LEVEL and current_tier == DIFFICULTY_EASY:
            return DIFFICULTY_NORMAL
        if avg_color_level <= DEMOTE_LEVEL and current_tier != DIFFICULTY_EASY:
            return DIFFICULTY_ORDER[index - 1]
        return current_tier

    def days_since_evaluation(self, state: DifficultyState, now: datetime) -> int:
        return math.floor(DateService.hours_between(state.last_evaluation, now) / 24)

    def should_evaluate(
        self,
        state: DifficultyState,
        history: List[DailyHistorySnapshot],
        now: datetime
    ) -> bool:
        """Due after evaluation_days and with enough recorded days in the window"""
        if not self.config.difficulty_enabled:
            return False
        if self.days_since_evaluation(state, now) < self.config.evaluation_days:
            return False
        return len(self.window(history, now)) >= self.config.adjustment_threshold

    def evaluate(
        self,
        state: DifficultyState,
        history: List[DailyHistorySnapshot],
        now: datetime
    ) -> DifficultyState:
        """
        Run an evaluation if one is due.

        Whenever it fires, last_evaluation moves to now whether or not the
        tier changes, so the check does not re-fire every tick.

        Returns:
            New difficulty state (unchanged when not due)
        """
        if not self.should_evaluate(state, history, now):
            return state

        avg = self.avg_color_level(self.window(history, now))
        new_tier = self.recommended_tier(state.current_tier, avg)

        if new_tier != state.current_tier:
            logger.info(
                f"Difficulty changed: {state.current_tier} -> {new_tier} "
                f"(avg color level {avg:.2f})"
            )

        return state.model_copy(update={
            "current_tier": new_tier,
            "last_evaluation": DateService.ensure_aware(now),
        })

    def set_tier(self, state: DifficultyState, tier: str, now: datetime) -> DifficultyState:
        """Manual override; restarts the evaluation clock"""
        tier = self.validate_tier(tier)
        logger.info(f"Difficulty set manually: {state.current_tier} -> {tier}")
        return state.model_copy(update={
            "current_tier": tier,
            "last_evaluation": DateService.ensure_aware(now),
        })

    def reset_to_normal(self, state: DifficultyState, now: datetime) -> DifficultyState:
        return self.set_tier(state, DIFFICULTY_NORMAL, now)

    @staticmethod
    def performance_rating(avg_color_level: float) -> str:
        if avg_color_level >= 4:
            return "excellent"
        if avg_color_level >= 3:
            return "good"
        if avg_color_level >= 2:
            return "fair"
        return "needs-improvement"

    def describe(
        self,
        state: DifficultyState,
        history: List[DailyHistorySnapshot],
        now: datetime
    ) -> DifficultyResponse:
        """Tier descriptor plus trailing performance for rendering"""
        days = self.window(history, now)
        avg = self.avg_color_level(days)
        rating = self.performance_rating(avg)

        return DifficultyResponse(
            current_tier=self.tier_info(state.current_tier),
            last_evaluation=state.last_evaluation,
            performance=DifficultyPerformance(
                avg_color_level=round(avg, 2),
                days_evaluated=len(days),
                performance_rating=rating,
                feedback=PERFORMANCE_FEEDBACK[rating],
            ),
            should_adjust=self.should_evaluate(state, history, now)
            and self.recommended_tier(state.current_tier, avg) != state.current_tier,
        )
