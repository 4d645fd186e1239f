"""
Energy engine - the single writer over all engine state.
Every mutation runs under one lock as state = transition(state, ...), is persisted
right away and reports the signals it produced. Foreground completions and
background scheduler ticks go through the same instance.
"""
import logging
import threading
from collections import deque
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from energy_engine.constants import SOURCE_TASKS
from energy_engine.database import SessionLocal
from energy_engine.exceptions import ValidationException
from energy_engine.repositories.settings_repository import SettingsRepository
from energy_engine.repositories.snapshot_repository import SnapshotRepository
from energy_engine.schemas import (
    CalibrationProfile,
    CalibrationSample,
    CompletionEvent,
    DecayMonitor,
    DifficultyResponse,
    DifficultyState,
    EnergyState,
    EngineConfig,
    EngineResult,
    EngineSignal,
    Prediction,
    PredictionRequest,
    ResonanceSummary,
)
from energy_engine.services.calibration_service import CalibrationService
from energy_engine.services.decay_service import DecayService
from energy_engine.services.difficulty_service import DifficultyService
from energy_engine.services.energy_service import EnergyService
from energy_engine.services.prediction_service import PredictionService
from energy_engine.services.resonance_service import ResonanceService

logger = logging.getLogger("energy_engine.engine")

SAMPLES_ADAPTER = TypeAdapter(List[CalibrationSample])
MAX_PENDING_SIGNALS = 100


class EnergyEngine:
    """Serialized owner of the ledger, difficulty, decay monitor and calibration samples"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory
        self._lock = threading.Lock()
        self._pending_signals: deque = deque(maxlen=MAX_PENDING_SIGNALS)

        self.state: Optional[EnergyState] = None
        self.difficulty: Optional[DifficultyState] = None
        self.monitor = DecayMonitor()
        self.samples: List[CalibrationSample] = []
        self._build_services(EngineConfig())

    def _build_services(self, config: EngineConfig) -> None:
        self.config = config
        self.energy_service = EnergyService(config)
        self.decay_service = DecayService(config)
        self.resonance_service = ResonanceService(config)
        self.prediction_service = PredictionService(config)
        self.difficulty_service = DifficultyService(config)
        self.calibration_service = CalibrationService(config)

    # === Loading and persistence ===

    def load(self, now: datetime) -> EnergyState:
        """Read config and rehydrate all state from the database"""
        with self._lock:
            self._load(now)
            return self.state

    def _load(self, now: datetime) -> None:
        db = self.session_factory()
        try:
            try:
                config = SettingsRepository.get_config(db)
            except ValidationException as e:
                logger.warning(f"{e}; using default settings")
                config = EngineConfig()
            snapshot = SnapshotRepository.get(db)
        finally:
            db.close()

        self._build_services(config)

        if snapshot is None:
            logger.info("No stored engine state, starting fresh")
            self.state = self.energy_service.create_initial_state(now)
            self.difficulty = self.difficulty_service.create_initial_state(now)
            self.monitor = DecayMonitor()
            self.samples = []
        else:
            self.state = self.energy_service.rehydrate_state(snapshot.state_json, now)
            self.difficulty = self._parse_difficulty(snapshot.difficulty_json, now)
            self.monitor = self._parse_monitor(snapshot.decay_monitor_json)
            self.samples = self._parse_samples(snapshot.calibration_json)

        self.state = self.energy_service.reset_energy_if_needed(self.state, now)
        self._persist()

    def _parse_difficulty(self, blob: Optional[str], now: datetime) -> DifficultyState:
        try:
            return DifficultyState.model_validate_json(blob or "")
        except ValidationError:
            logger.warning("Stored difficulty state is invalid; resetting to normal")
            return self.difficulty_service.create_initial_state(now)

    @staticmethod
    def _parse_monitor(blob: Optional[str]) -> DecayMonitor:
        try:
            return DecayMonitor.model_validate_json(blob or "")
        except ValidationError:
            return DecayMonitor()

    @staticmethod
    def _parse_samples(blob: Optional[str]) -> List[CalibrationSample]:
        try:
            return SAMPLES_ADAPTER.validate_json(blob or "")
        except ValidationError:
            logger.warning("Stored calibration samples are invalid; discarding them")
            return []

    def _persist(self) -> None:
        db = self.session_factory()
        try:
            SnapshotRepository.save(
                db,
                state_json=EnergyService.serialize_state(self.state),
                difficulty_json=self.difficulty.model_dump_json(),
                decay_monitor_json=self.monitor.model_dump_json(),
                calibration_json=SAMPLES_ADAPTER.dump_json(self.samples).decode(),
            )
        finally:
            db.close()

    def _ensure_loaded(self, now: datetime) -> None:
        if self.state is None:
            self._load(now)

    def _emit(self, signals: List[EngineSignal], kind: str, message: str, value: Optional[float] = None) -> None:
        signal = EngineSignal(kind=kind, message=message, value=value)
        signals.append(signal)
        self._pending_signals.append(signal)

    def _rollover(self, now: datetime, signals: List[EngineSignal]) -> None:
        previous = self.state
        self.state = self.energy_service.reset_energy_if_needed(self.state, now)
        if self.state is not previous:
            self._emit(signals, "daily_reset", "A new day has started", previous.total_energy)

    def _current(self, now: datetime) -> EnergyState:
        """Loaded state rolled over to the local day of now; caller holds the lock"""
        self._ensure_loaded(now)
        signals: List[EngineSignal] = []
        self._rollover(now, signals)
        if signals:
            self._persist()
        return self.state

    # === Mutations ===

    def record_completion(self, event: CompletionEvent, now: datetime) -> EngineResult:
        """
        Apply a completed action to the ledger.

        Attended events are credited to tasks with the flat event yield.
        A completion carrying a resonance score also feeds calibration.

        Returns:
            EngineResult with the new state and level_up / aura_earned /
            harmony / recovery signals
        """
        with self._lock:
            self._ensure_loaded(now)
            signals: List[EngineSignal] = []
            self._rollover(now, signals)

            previous = self.state
            was_in_harmony = self.resonance_service.summarize(previous, now).in_harmony

            source = SOURCE_TASKS if event.is_event else event.source
            base_amount = event.base_amount
            if base_amount is None:
                base_amount = EnergyService.base_amount_for(event.source, event.level, event.is_event)

            self.state = self.energy_service.add_energy(
                previous,
                source=source,
                base_amount=base_amount,
                title=event.title,
                now=now,
                item_id=event.item_id,
                resonance=event.resonance,
            )

            if self.decay_service.is_recovery(previous.last_activity, now):
                self._emit(signals, "recovery", "Welcome back! Your energy starts recovering.")
            if self.state.color_index > previous.color_index:
                level = self.state.current_color
                self._emit(signals, "level_up", f"Reached {level['name']}", self.state.color_index)
            if self.state.aura_count > previous.aura_count:
                self._emit(signals, "aura_earned", "Aura earned", self.state.aura_count)

            summary = self.resonance_service.summarize(self.state, now)
            if summary.in_harmony and not was_in_harmony:
                self._emit(signals, "harmony", "You're in harmony with your rhythm", summary.avg_resonance)

            if event.resonance is not None:
                sample = CalibrationSample(
                    timestamp=now,
                    resonance_outcome=ResonanceService.clamp_resonance(event.resonance),
                    priority=event.level if source == SOURCE_TASKS else None,
                    concurrent_tasks=event.concurrent_tasks,
                )
                self.samples = CalibrationService.record_sample(self.samples, sample)

            self.monitor = DecayMonitor()
            self._persist()
            return EngineResult(state=self.state, signals=signals)

    def run_reset_check(self, now: datetime) -> EngineResult:
        """Daily rollover tick"""
        with self._lock:
            self._ensure_loaded(now)
            signals: List[EngineSignal] = []
            self._rollover(now, signals)
            if signals:
                self._persist()
            return EngineResult(state=self.state, signals=signals)

    def run_decay_tick(self, now: datetime, apply: bool = True) -> EngineResult:
        """
        Inactivity tick.

        Args:
            now: Current instant
            apply: Apply due decay (hourly) or only raise warnings (every minute)
        """
        with self._lock:
            self._ensure_loaded(now)
            signals: List[EngineSignal] = []
            self._rollover(now, signals)

            previous_state, previous_monitor = self.state, self.monitor
            self.state, self.monitor, evaluation = self.decay_service.evaluate(
                self.state, self.monitor, now, apply=apply
            )

            if evaluation.signal == "warning":
                self._emit(
                    signals, "warning",
                    "Your energy will start fading soon. Complete something to keep it.",
                    round(evaluation.hours_since_activity, 2),
                )
            elif evaluation.signal == "decay":
                self._emit(signals, "decay", f"Lost {evaluation.amount} energy to inactivity", evaluation.amount)

            if signals or self.state is not previous_state or self.monitor is not previous_monitor:
                self._persist()
            return EngineResult(state=self.state, signals=signals)

    def run_difficulty_check(self, now: datetime) -> EngineResult:
        """Adaptive difficulty tick"""
        with self._lock:
            self._ensure_loaded(now)
            signals: List[EngineSignal] = []
            self._rollover(now, signals)

            previous = self.difficulty
            self.difficulty = self.difficulty_service.evaluate(previous, self.state.daily_history, now)
            if self.difficulty.current_tier != previous.current_tier:
                info = DifficultyService.tier_info(self.difficulty.current_tier)
                self._emit(signals, "difficulty_changed", f"Difficulty is now {info.name}", info.multiplier)

            if signals or self.difficulty is not previous:
                self._persist()
            return EngineResult(state=self.state, signals=signals)

    def toggle_display_mode(self, now: datetime) -> EnergyState:
        with self._lock:
            self.state = EnergyService.toggle_display_mode(self._current(now))
            self._persist()
            return self.state

    def set_tier(self, tier: str, now: datetime) -> DifficultyResponse:
        """
        Manually choose a difficulty tier.

        Raises:
            InvalidDifficultyTierException: If tier is unknown
        """
        with self._lock:
            self._current(now)
            self.difficulty = self.difficulty_service.set_tier(self.difficulty, tier, now)
            self._persist()
            return self.difficulty_service.describe(self.difficulty, self.state.daily_history, now)

    def reset_difficulty(self, now: datetime) -> DifficultyResponse:
        with self._lock:
            self._current(now)
            self.difficulty = self.difficulty_service.reset_to_normal(self.difficulty, now)
            self._persist()
            return self.difficulty_service.describe(self.difficulty, self.state.daily_history, now)

    def add_calibration_sample(self, sample: CalibrationSample, now: datetime) -> CalibrationProfile:
        with self._lock:
            self._ensure_loaded(now)
            self.samples = CalibrationService.record_sample(self.samples, sample)
            self._persist()
            return self.calibration_service.build_profile(self.samples)

    def record_timing_feedback(self, rating: int, now: datetime) -> CalibrationProfile:
        """Rate how well the latest calibrated completion was timed (1-5)"""
        with self._lock:
            self._ensure_loaded(now)
            self.samples = CalibrationService.record_timing_feedback(self.samples, rating)
            self._persist()
            return self.calibration_service.build_profile(self.samples)

    # === Read-only views ===

    def snapshot(self, now: datetime) -> EnergyState:
        """Current state, rolled over first when the local day has changed"""
        with self._lock:
            return self._current(now)

    def breakdown(self, now: datetime) -> dict:
        return EnergyService.breakdown(self.snapshot(now))

    def resonance(self, now: datetime) -> ResonanceSummary:
        return self.resonance_service.summarize(self.snapshot(now), now)

    def predict(self, request: PredictionRequest, now: datetime) -> Prediction:
        """Forecast from the current state and the caller's schedule view"""
        state = self.snapshot(now)
        historical_average = request.historical_average
        if historical_average is None:
            historical_average = PredictionService.historical_average_from(state.daily_history)

        return self.prediction_service.predict(
            state,
            request.scheduled_items,
            historical_average,
            now,
            goal_threshold=request.goal_threshold,
        )

    def describe_difficulty(self, now: datetime) -> DifficultyResponse:
        with self._lock:
            state = self._current(now)
            return self.difficulty_service.describe(self.difficulty, state.daily_history, now)

    def calibration_profile(self, now: datetime) -> CalibrationProfile:
        with self._lock:
            self._ensure_loaded(now)
            return self.calibration_service.build_profile(self.samples)

    def circadian_curve(self, now: datetime) -> Dict[int, float]:
        with self._lock:
            self._ensure_loaded(now)
            return self.calibration_service.circadian_curve(self.samples)

    def drain_signals(self) -> List[EngineSignal]:
        """Signals produced since the last drain, oldest first"""
        with self._lock:
            signals = list(self._pending_signals)
            self._pending_signals.clear()
            return signals
