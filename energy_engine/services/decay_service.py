"""
Inactivity decay service.
Handles all decay-related calculations including warnings, sleep window, caps and recovery.
"""
import logging
import math
from datetime import datetime
from typing import Optional

from energy_engine.schemas import DecayEvaluation, DecayMonitor, EnergyState, EngineConfig
from energy_engine.services.date_service import DateService
from energy_engine.services.energy_service import EnergyService

logger = logging.getLogger("energy_engine.decay")

DECAY_GROWTH_PER_HOUR = 0.1
PER_CALL_CAP_FACTOR = 2
WARNING_INTERVAL_HOURS = 1


class DecayService:
    """Service for inactivity decay"""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.energy_service = EnergyService(self.config)

    def hours_since_activity(self, state: EnergyState, now: datetime) -> float:
        """
        Hours since the last non-decay entry.

        An unusable last_activity counts as "now" (zero elapsed time).
        """
        try:
            return DateService.hours_between(state.last_activity, now)
        except (TypeError, AttributeError, ValueError, OverflowError):
            return 0.0

    def is_sleep_window(self, now: datetime) -> bool:
        """Whether now falls in the configured quiet hours"""
        return DateService.is_within_window(
            now, self.config.sleep_start, self.config.sleep_end, self.config.timezone
        )

    def calculate_decay_amount(self, hours_since_activity: float) -> int:
        """
        Decay magnitude for one invocation, before the daily cap.

        Formula: floor(|base_rate| × (1 + 0.1 × (hours − decay_start)))
        capped at 2 × |base_rate|. Zero before decay starts.
        """
        if hours_since_activity < self.config.decay_start_hours:
            return 0

        base = abs(self.config.decay_base_rate)
        inactive_hours = hours_since_activity - self.config.decay_start_hours
        magnitude = math.floor(base * (1 + DECAY_GROWTH_PER_HOUR * inactive_hours))
        return min(magnitude, PER_CALL_CAP_FACTOR * base)

    def decay_applied_today(self, state: EnergyState, now: datetime) -> int:
        """Magnitude of decay already logged on now's local day"""
        today = DateService.local_date(now, self.config.timezone)
        return -sum(
            e.amount for e in state.entries
            if e.is_decay and DateService.local_date(e.timestamp, self.config.timezone) == today
        )

    def remaining_daily_allowance(self, state: EnergyState, now: datetime) -> int:
        return max(0, self.config.max_decay_per_day - self.decay_applied_today(state, now))

    def apply_decay(self, state: EnergyState, hours_elapsed: float, now: datetime) -> EnergyState:
        """
        Apply decay for hours_elapsed hours of inactivity.

        No-op inside the sleep window or before decay starts. The result is
        capped per call and per local day, and the total never goes below 0.
        """
        if self.is_sleep_window(now):
            return state

        amount = min(
            self.calculate_decay_amount(max(0.0, hours_elapsed)),
            self.remaining_daily_allowance(state, now)
        )
        if amount <= 0:
            return state

        new_state = self.energy_service.record_decay(state, amount, now)
        applied = state.total_energy - new_state.total_energy
        if applied > 0:
            logger.info(f"Applied {applied} inactivity decay after {hours_elapsed:.1f}h")
        return new_state

    def evaluate(
        self,
        state: EnergyState,
        monitor: DecayMonitor,
        now: datetime,
        apply: bool = True
    ) -> tuple[EnergyState, DecayMonitor, DecayEvaluation]:
        """
        Evaluate inactivity rules for one scheduler tick.

        Args:
            state: Current ledger
            monitor: Warning rate-limit state
            now: Current instant
            apply: Whether a due decay may mutate the ledger (hourly tick)
                or only be reported (minute tick)

        Returns:
            Tuple of (new_state, new_monitor, evaluation)
        """
        hours = self.hours_since_activity(state, now)

        if self.is_sleep_window(now):
            return state, monitor, DecayEvaluation(signal="sleeping", hours_since_activity=hours)

        if hours < self.config.decay_warning_hours:
            return state, monitor, DecayEvaluation(signal="none", hours_since_activity=hours)

        if hours < self.config.decay_start_hours:
            if self._warning_due(monitor, now):
                monitor = monitor.model_copy(update={"last_warning_at": DateService.ensure_aware(now)})
                return state, monitor, DecayEvaluation(signal="warning", hours_since_activity=hours)
            return state, monitor, DecayEvaluation(signal="none", hours_since_activity=hours)

        if not apply:
            return state, monitor, DecayEvaluation(signal="none", hours_since_activity=hours)

        new_state = self.apply_decay(state, hours, now)
        applied = state.total_energy - new_state.total_energy
        if applied <= 0:
            return new_state, monitor, DecayEvaluation(signal="none", hours_since_activity=hours)
        return new_state, monitor, DecayEvaluation(
            signal="decay", hours_since_activity=hours, amount=applied
        )

    def _warning_due(self, monitor: DecayMonitor, now: datetime) -> bool:
        """At most one warning per hour"""
        if monitor.last_warning_at is None:
            return True
        return DateService.hours_between(monitor.last_warning_at, now) >= WARNING_INTERVAL_HOURS

    def is_recovery(self, previous_activity: datetime, now: datetime) -> bool:
        """
        Whether a completion at now is a return after a long break.

        True when the gap since the previous activity is 12-24 hours.
        """
        try:
            gap = DateService.hours_between(previous_activity, now)
        except (TypeError, AttributeError, ValueError, OverflowError):
            return False
        return self.config.recovery_min_hours <= gap <= self.config.recovery_max_hours
