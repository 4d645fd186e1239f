"""
Resonance multiplier service.
Maps alignment scores to energy multipliers and derives streak and harmony views.
"""
from datetime import date, datetime, timedelta
from typing import List, Optional

from energy_engine.constants import (
    HARMONY_MIN_COMPLETIONS,
    HIGH_RESONANCE_THRESHOLD,
    RESONANCE_MAX,
    RESONANCE_MIN,
    RESONANCE_MULTIPLIER_BANDS,
    RESONANCE_STATUS_FLOW,
    RESONANCE_STATUS_HIGH,
    RESONANCE_STATUS_LOW,
    RESONANCE_STATUS_MEDIUM,
    STREAK_BONUS_STEPS,
)
from energy_engine.schemas import (
    DailyHistorySnapshot,
    EnergyEntry,
    EnergyState,
    EngineConfig,
    ResonanceSummary,
)
from energy_engine.services.date_service import DateService

RESONANCE_INSIGHTS = {
    RESONANCE_STATUS_FLOW: "You're in flow. Your schedule matches your rhythm almost perfectly.",
    RESONANCE_STATUS_HIGH: "Strong alignment today. Keep hard work in your peak hours.",
    RESONANCE_STATUS_MEDIUM: "Decent alignment. Moving demanding tasks earlier could help.",
    RESONANCE_STATUS_LOW: "Low alignment. Try scheduling focus work closer to your peak hours.",
}
NO_DATA_INSIGHT = "Complete a scheduled task to start measuring resonance."


class ResonanceService:
    """Service for resonance multipliers, streaks and harmony"""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    @staticmethod
    def clamp_resonance(resonance: float) -> float:
        """Clamp a resonance score into 0-100"""
        return max(float(RESONANCE_MIN), min(float(RESONANCE_MAX), float(resonance)))

    @staticmethod
    def multiplier_for(resonance: Optional[float]) -> float:
        """
        Energy multiplier for a single completion.

        >= 90 -> 2.0, 80-89 -> 1.5, 60-79 -> 1.2, 40-59 -> 1.0,
        20-39 -> 0.8, < 20 -> 0.6. No score means no adjustment.
        """
        if resonance is None:
            return 1.0

        resonance = ResonanceService.clamp_resonance(resonance)
        for min_resonance, multiplier in RESONANCE_MULTIPLIER_BANDS:
            if resonance >= min_resonance:
                return multiplier
        return RESONANCE_MULTIPLIER_BANDS[-1][1]

    @staticmethod
    def status_for(avg_resonance: Optional[float]) -> Optional[str]:
        """Bucket a daily average into low / medium / high / flow"""
        if avg_resonance is None:
            return None
        if avg_resonance >= 90:
            return RESONANCE_STATUS_FLOW
        if avg_resonance >= 80:
            return RESONANCE_STATUS_HIGH
        if avg_resonance >= 60:
            return RESONANCE_STATUS_MEDIUM
        return RESONANCE_STATUS_LOW

    @staticmethod
    def average_resonance(entries: List[EnergyEntry]) -> Optional[float]:
        """Mean resonance over completions that carried a score"""
        scores = [e.resonance for e in entries if not e.is_decay and e.resonance is not None]
        if not scores:
            return None
        return sum(scores) / len(scores)

    @staticmethod
    def completed_count(entries: List[EnergyEntry]) -> int:
        """Number of completions (decay entries excluded)"""
        return sum(1 for e in entries if not e.is_decay)

    @staticmethod
    def streak_days(history: List[DailyHistorySnapshot], today: date) -> int:
        """
        Consecutive calendar days before today with average resonance >= 80.

        A missing day or a day without resonance data ends the streak.
        """
        by_date = {snapshot.date: snapshot for snapshot in history}
        streak = 0
        check_date = today - timedelta(days=1)

        while True:
            snapshot = by_date.get(check_date)
            if (
                snapshot is None
                or snapshot.avg_resonance is None
                or snapshot.avg_resonance < HIGH_RESONANCE_THRESHOLD
            ):
                break
            streak += 1
            check_date -= timedelta(days=1)

        return streak

    @staticmethod
    def streak_bonus(streak_days: int) -> int:
        """Step bonus: 50 at 7+ days, 30 at 5+, 15 at 3+, else 0"""
        for min_days, bonus in STREAK_BONUS_STEPS:
            if streak_days >= min_days:
                return bonus
        return 0

    @staticmethod
    def is_in_harmony(completed_today: int, avg_resonance: Optional[float]) -> bool:
        """Flow condition: 5+ completions today averaging 80+ resonance"""
        if avg_resonance is None:
            return False
        return (
            completed_today >= HARMONY_MIN_COMPLETIONS
            and avg_resonance >= HIGH_RESONANCE_THRESHOLD
        )

    def today_entries(self, state: EnergyState, now: datetime) -> List[EnergyEntry]:
        """Entries recorded on the local calendar day of now"""
        today = DateService.local_date(now, self.config.timezone)
        return [
            e for e in state.entries
            if DateService.local_date(e.timestamp, self.config.timezone) == today
        ]

    def summarize(self, state: EnergyState, now: datetime) -> ResonanceSummary:
        """Derived resonance view for the current day"""
        entries = self.today_entries(state, now)
        avg = self.average_resonance(entries)
        completed = self.completed_count(entries)
        status = self.status_for(avg)
        streak = self.streak_days(
            state.daily_history, DateService.local_date(now, self.config.timezone)
        )

        return ResonanceSummary(
            avg_resonance=round(avg, 1) if avg is not None else None,
            status=status,
            completed_today=completed,
            streak_days=streak,
            streak_bonus=self.streak_bonus(streak),
            in_harmony=self.is_in_harmony(completed, avg),
            insight=RESONANCE_INSIGHTS.get(status, NO_DATA_INSIGHT),
        )
