"""
Energy ledger service.
Pure state transitions over EnergyState: completions, daily rollover, decay bookkeeping
and rehydration of persisted blobs. Every method returns a new state.
"""
import json
import logging
import math
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from energy_engine.colors import color_index_of
from energy_engine.constants import (
    ACHIEVEMENT_ENERGY,
    DECAY_SOURCE,
    DISPLAY_MODE_AURA,
    DISPLAY_MODE_POINTS,
    ENERGY_SOURCES,
    EVENT_ENERGY,
    GOAL_ENERGY,
    HEALTH_ENERGY,
    MAX_COLOR_INDEX,
    MILESTONE_ENERGY,
    SOURCE_ACHIEVEMENTS,
    SOURCE_GOALS,
    SOURCE_HEALTH,
    SOURCE_MILESTONES,
    SOURCE_STEPS,
    SOURCE_TASKS,
    STEP_ENERGY,
    TASK_ENERGY,
)
from energy_engine.exceptions import StateRehydrationException
from energy_engine.schemas import (
    DailyHistorySnapshot,
    EnergyEntry,
    EnergyState,
    EngineConfig,
    SourceAmount,
    empty_by_source,
)
from energy_engine.services.date_service import DateService
from energy_engine.services.resonance_service import ResonanceService

logger = logging.getLogger("energy_engine.ledger")

DERIVED_FIELDS = {"color_index", "progress_to_next_color", "current_color", "aura_index"}


class EnergyService:
    """Service for energy ledger transitions"""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def create_initial_state(self, now: datetime) -> EnergyState:
        """Fresh ledger: zero energy, empty logs, both clocks at now"""
        now = DateService.ensure_aware(now)
        return EnergyState(last_reset=now, last_activity=now)

    @staticmethod
    def base_amount_for(source: str, level: Optional[str] = None, is_event: bool = False) -> int:
        """
        Look up the base energy for an action.

        Args:
            source: Energy source of the action
            level: Priority (tasks), size (goals), tier (achievements)
                or action (health); unknown levels use the middle value
            is_event: Attended calendar event (flat yield)

        Returns:
            Base energy before the resonance multiplier
        """
        if is_event:
            return EVENT_ENERGY
        if source == SOURCE_TASKS:
            return TASK_ENERGY.get(level or "medium", TASK_ENERGY["medium"])
        if source == SOURCE_GOALS:
            return GOAL_ENERGY.get(level or "medium", GOAL_ENERGY["medium"])
        if source == SOURCE_MILESTONES:
            return MILESTONE_ENERGY
        if source == SOURCE_STEPS:
            return STEP_ENERGY
        if source == SOURCE_ACHIEVEMENTS:
            return ACHIEVEMENT_ENERGY.get(level or "bronze", ACHIEVEMENT_ENERGY["bronze"])
        if source == SOURCE_HEALTH:
            return HEALTH_ENERGY.get(level or "hydration", HEALTH_ENERGY["hydration"])
        return 0

    def add_energy(
        self,
        state: EnergyState,
        source: str,
        base_amount: int,
        title: str,
        now: datetime,
        item_id: Optional[str] = None,
        resonance: Optional[float] = None
    ) -> EnergyState:
        """
        Record a completed action.

        Formula: amount = floor(base × ResonanceMultiplier)

        Negative base amounts and out-of-range resonance are clamped.
        The first time the total reaches the last color level in a day,
        one aura is earned.

        Returns:
            New state with the entry appended
        """
        now = DateService.ensure_aware(now)
        base_amount = max(0, int(base_amount))
        if resonance is not None:
            resonance = ResonanceService.clamp_resonance(resonance)

        multiplier = ResonanceService.multiplier_for(resonance)
        actual_amount = math.floor(base_amount * multiplier)

        # Log stays ordered: an earlier clock reading is pinned to the last entry
        timestamp = now
        if state.entries and state.entries[-1].timestamp > timestamp:
            timestamp = state.entries[-1].timestamp

        entry = EnergyEntry(
            id=uuid.uuid4().hex,
            source=source,
            amount=actual_amount,
            title=title,
            item_id=item_id,
            resonance=resonance,
            timestamp=timestamp,
        )

        new_total = max(0, state.total_energy + actual_amount)
        by_source = dict(state.by_source)
        by_source[source] = max(0, by_source.get(source, 0) + actual_amount)

        aura_count = state.aura_count
        aura_earned_today = state.aura_earned_today
        if color_index_of(new_total) == MAX_COLOR_INDEX and not aura_earned_today:
            aura_count += 1
            aura_earned_today = True
            logger.info(f"Aura earned (total auras: {aura_count})")

        return state.model_copy(update={
            "total_energy": new_total,
            "by_source": by_source,
            "entries": state.entries + [entry],
            "aura_count": aura_count,
            "aura_earned_today": aura_earned_today,
            "last_activity": now,
        })

    def reset_energy_if_needed(self, state: EnergyState, now: datetime) -> EnergyState:
        """
        Roll the ledger over when the local calendar day changes.

        Yesterday's total is appended to daily history (trimmed to the
        retention window); the daily accumulators are cleared. Aura count
        is lifetime and survives. Same-day calls return the state unchanged.
        """
        now = DateService.ensure_aware(now)
        tz_name = self.config.timezone
        last_reset_day = DateService.local_date(state.last_reset, tz_name)

        if DateService.local_date(now, tz_name) == last_reset_day:
            return state

        snapshot = self._build_snapshot(state, last_reset_day)
        history = (state.daily_history + [snapshot])[-self.config.history_retention_days:]

        logger.info(f"Daily rollover: {last_reset_day} closed with {state.total_energy} energy")

        return state.model_copy(update={
            "total_energy": 0,
            "by_source": empty_by_source(),
            "entries": [],
            "aura_earned_today": False,
            "daily_history": history,
            "last_reset": now,
        })

    def _build_snapshot(self, state: EnergyState, day) -> DailyHistorySnapshot:
        """Summarize the closing day for history"""
        top_sources = sorted(
            (SourceAmount(source=s, amount=a) for s, a in state.by_source.items() if a > 0),
            key=lambda item: item.amount,
            reverse=True
        )[:3]
        avg_resonance = ResonanceService.average_resonance(state.entries)

        return DailyHistorySnapshot(
            date=day,
            total_energy=state.total_energy,
            color_index=color_index_of(state.total_energy),
            aura_earned=state.aura_earned_today,
            avg_resonance=avg_resonance,
            completed_count=ResonanceService.completed_count(state.entries),
            top_sources=top_sources,
        )

    def apply_decay(self, state: EnergyState, hours_elapsed: float, now: datetime) -> EnergyState:
        """Apply inactivity decay for the given hours since last activity"""
        from energy_engine.services.decay_service import DecayService

        return DecayService(self.config).apply_decay(state, hours_elapsed, now)

    def record_decay(self, state: EnergyState, amount: int, now: datetime) -> EnergyState:
        """
        Subtract a decay magnitude from the ledger.

        The total never goes below 0 and source totals shrink proportionally.
        The applied amount is logged as a negative decay entry; a zero
        effect leaves the state untouched.
        """
        applied = min(max(0, int(amount)), state.total_energy)
        if applied <= 0:
            return state

        now = DateService.ensure_aware(now)
        new_total = state.total_energy - applied
        ratio = new_total / state.total_energy
        by_source = {
            source: math.floor(value * ratio)
            for source, value in state.by_source.items()
        }

        timestamp = now
        if state.entries and state.entries[-1].timestamp > timestamp:
            timestamp = state.entries[-1].timestamp

        entry = EnergyEntry(
            id=uuid.uuid4().hex,
            source=DECAY_SOURCE,
            amount=-applied,
            title="Inactivity decay",
            timestamp=timestamp,
        )

        return state.model_copy(update={
            "total_energy": new_total,
            "by_source": by_source,
            "entries": state.entries + [entry],
        })

    @staticmethod
    def toggle_display_mode(state: EnergyState) -> EnergyState:
        """Switch between points and aura rendering"""
        new_mode = DISPLAY_MODE_AURA if state.display_mode == DISPLAY_MODE_POINTS else DISPLAY_MODE_POINTS
        return state.model_copy(update={"display_mode": new_mode})

    @staticmethod
    def serialize_state(state: EnergyState) -> str:
        """JSON blob for persistence (derived views excluded)"""
        return state.model_dump_json(exclude=DERIVED_FIELDS)

    def rehydrate_state(self, blob: Any, now: datetime) -> EnergyState:
        """
        Rebuild a state from a persisted blob.

        Any malformed blob (bad JSON, invalid instants, non-list logs,
        unknown sources) yields a fresh initial state instead of an error.
        """
        try:
            return self._parse_state(blob)
        except StateRehydrationException as e:
            logger.warning(f"{e}; starting from a fresh state")
            return self.create_initial_state(now)

    @staticmethod
    def _parse_state(blob: Any) -> EnergyState:
        if blob is None:
            raise StateRehydrationException("no stored state")

        if isinstance(blob, (str, bytes)):
            try:
                blob = json.loads(blob)
            except json.JSONDecodeError as e:
                raise StateRehydrationException(f"invalid JSON ({e.msg})")

        if not isinstance(blob, dict):
            raise StateRehydrationException(f"expected an object, got {type(blob).__name__}")

        for field in ("entries", "daily_history"):
            if field in blob and not isinstance(blob[field], list):
                raise StateRehydrationException(f"{field} is not a list")

        try:
            return EnergyState.model_validate(blob)
        except ValidationError as e:
            raise StateRehydrationException(f"{e.error_count()} invalid field(s)")

    @staticmethod
    def segmented_by_source(state: EnergyState) -> list[dict]:
        """Non-empty source segments with their share of the source total"""
        total = sum(state.by_source.values())
        return [
            {
                "source": source,
                "amount": state.by_source.get(source, 0),
                "percentage": (state.by_source.get(source, 0) / total * 100) if total > 0 else 0,
            }
            for source in ENERGY_SOURCES
            if state.by_source.get(source, 0) > 0
        ]

    @staticmethod
    def breakdown(state: EnergyState) -> dict:
        """Ledger of today's activity: grouped by source, timeline and summary"""
        grouped: dict[str, list[EnergyEntry]] = {}
        for entry in state.entries:
            grouped.setdefault(entry.source, []).append(entry)

        return {
            "by_source": grouped,
            "timeline": sorted(state.entries, key=lambda e: e.timestamp, reverse=True),
            "segments": EnergyService.segmented_by_source(state),
            "summary": {
                "total_actions": sum(1 for e in state.entries if not e.is_decay),
                "sources": len({e.source for e in state.entries if not e.is_decay}),
                "decay_total": -sum(e.amount for e in state.entries if e.is_decay),
            },
        }
