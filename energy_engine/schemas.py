from pydantic import BaseModel, Field, computed_field, field_validator, model_validator
from datetime import datetime, date
from typing import Dict, List, Literal, Optional

from energy_engine.colors import color_index_of, color_level, progress_to_next_color
from energy_engine.constants import (
    COLOR_LEVELS,
    DECAY_SOURCE,
    DIFFICULTY_NORMAL,
    DISPLAY_MODE_POINTS,
    ENERGY_SOURCES,
)
from energy_engine.exceptions import InvalidTimeFormatException
from energy_engine.services.date_service import DateService

EnergySource = Literal["tasks", "goals", "milestones", "steps", "achievements", "health"]
DisplayMode = Literal["points", "aura"]
DifficultyTierName = Literal["easy", "normal", "hard", "expert"]
ConfidenceBucket = Literal["low", "medium", "high"]


def empty_by_source() -> Dict[str, int]:
    return {source: 0 for source in ENERGY_SOURCES}


# Engine configuration
class EngineConfig(BaseModel):
    timezone: str = "UTC"
    history_retention_days: int = Field(default=30, ge=1, le=365)

    # Inactivity decay
    decay_base_rate: int = Field(default=-2, le=0)
    decay_warning_hours: float = Field(default=3, ge=0)
    decay_start_hours: float = Field(default=4, ge=0)
    max_decay_per_day: int = Field(default=50, ge=0)
    sleep_start: str = "22:00"
    sleep_end: str = "07:00"
    recovery_min_hours: float = Field(default=12, ge=0)
    recovery_max_hours: float = Field(default=24, ge=0)

    # Adaptive difficulty
    difficulty_enabled: bool = True
    evaluation_days: int = Field(default=7, ge=1, le=90)
    adjustment_threshold: int = Field(default=5, ge=1, le=90)

    # Calibration
    calibration_min_samples: int = Field(default=10, ge=1)

    @field_validator("sleep_start", "sleep_end")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        try:
            DateService.parse_time(value)
        except InvalidTimeFormatException as e:
            raise ValueError(str(e))
        return value

    @model_validator(mode="after")
    def validate_windows(self) -> "EngineConfig":
        if self.decay_warning_hours > self.decay_start_hours:
            raise ValueError("decay_warning_hours must not exceed decay_start_hours")
        if self.recovery_min_hours > self.recovery_max_hours:
            raise ValueError("recovery_min_hours must not exceed recovery_max_hours")
        return self

    class Config:
        from_attributes = True


# Ledger
class EnergyEntry(BaseModel):
    id: str
    source: str
    amount: int
    title: str = ""
    item_id: Optional[str] = None
    resonance: Optional[float] = None
    timestamp: datetime

    @field_validator("source")
    @classmethod
    def validate_source(cls, value: str) -> str:
        if value not in ENERGY_SOURCES and value != DECAY_SOURCE:
            raise ValueError(f"unknown energy source: {value}")
        return value

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, value: datetime) -> datetime:
        return DateService.ensure_aware(value)

    @property
    def is_decay(self) -> bool:
        return self.source == DECAY_SOURCE


class SourceAmount(BaseModel):
    source: str
    amount: int


class DailyHistorySnapshot(BaseModel):
    date: date
    total_energy: int = Field(ge=0)
    color_index: int = 0
    aura_earned: bool = False
    avg_resonance: Optional[float] = None
    completed_count: int = 0
    top_sources: List[SourceAmount] = []


class EnergyState(BaseModel):
    total_energy: int = Field(default=0, ge=0)
    aura_count: int = Field(default=0, ge=0)
    aura_earned_today: bool = False
    by_source: Dict[str, int] = Field(default_factory=empty_by_source)
    entries: List[EnergyEntry] = []
    daily_history: List[DailyHistorySnapshot] = []
    last_reset: datetime
    last_activity: datetime
    display_mode: DisplayMode = DISPLAY_MODE_POINTS

    @field_validator("last_reset", "last_activity")
    @classmethod
    def validate_instants(cls, value: datetime) -> datetime:
        return DateService.ensure_aware(value)

    @field_validator("by_source")
    @classmethod
    def validate_by_source(cls, value: Dict[str, int]) -> Dict[str, int]:
        merged = empty_by_source()
        for source, amount in value.items():
            if source not in merged:
                raise ValueError(f"unknown energy source: {source}")
            merged[source] = amount
        return merged

    @computed_field
    @property
    def color_index(self) -> int:
        return color_index_of(self.total_energy)

    @computed_field
    @property
    def progress_to_next_color(self) -> float:
        return progress_to_next_color(self.total_energy)

    @computed_field
    @property
    def current_color(self) -> dict:
        return color_level(self.color_index)

    @computed_field
    @property
    def aura_index(self) -> int:
        return self.aura_count % len(COLOR_LEVELS)


# Completion intake
class CompletionEvent(BaseModel):
    source: EnergySource
    title: str = Field(..., min_length=1, max_length=500)
    base_amount: Optional[int] = None
    level: Optional[str] = None  # priority, size, tier or health action
    is_event: bool = False
    item_id: Optional[str] = None
    resonance: Optional[float] = None
    concurrent_tasks: int = Field(default=0, ge=0)  # other open tasks at completion time


class ScheduledItem(BaseModel):
    id: Optional[str] = None
    title: str = ""
    kind: Literal["task", "event", "goal", "milestone", "step"] = "task"
    priority: Optional[str] = None
    energy_level: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    completed: bool = False


# Decay
class DecayMonitor(BaseModel):
    last_warning_at: Optional[datetime] = None


class DecayEvaluation(BaseModel):
    signal: Literal["none", "sleeping", "warning", "decay"]
    hours_since_activity: float
    amount: int = 0


# Resonance
class ResonanceSummary(BaseModel):
    avg_resonance: Optional[float]
    status: Optional[str]
    completed_today: int
    streak_days: int
    streak_bonus: int
    in_harmony: bool
    insight: str


# Prediction
class Prediction(BaseModel):
    current_energy: int
    remaining_potential: int
    predicted_energy: int
    predicted_color_index: int
    predicted_color: dict
    confidence: float
    confidence_level: ConfidenceBucket
    historical_average: float
    goal_threshold: int
    on_track_for_goal: bool
    tasks_remaining: int
    hours_remaining: int
    recommendations: List[str]


class PredictionRequest(BaseModel):
    scheduled_items: List[ScheduledItem] = []
    historical_average: Optional[float] = None
    goal_threshold: Optional[int] = Field(default=None, ge=0)


# Difficulty
class DifficultyState(BaseModel):
    current_tier: DifficultyTierName = DIFFICULTY_NORMAL
    last_evaluation: datetime

    @field_validator("last_evaluation")
    @classmethod
    def validate_last_evaluation(cls, value: datetime) -> datetime:
        return DateService.ensure_aware(value)


class DifficultyTier(BaseModel):
    key: DifficultyTierName
    name: str
    multiplier: float
    description: str
    color_thresholds: List[int]


class DifficultyPerformance(BaseModel):
    avg_color_level: float
    days_evaluated: int
    performance_rating: str
    feedback: str


class DifficultyResponse(BaseModel):
    current_tier: DifficultyTier
    last_evaluation: datetime
    performance: DifficultyPerformance
    should_adjust: bool


class DifficultyUpdate(BaseModel):
    tier: str


# Calibration
class CalibrationSample(BaseModel):
    timestamp: datetime
    task_duration: Optional[float] = Field(default=None, ge=0)  # minutes
    resonance_outcome: float
    priority: Optional[str] = None
    concurrent_tasks: int = Field(default=0, ge=0)
    user_rating: Optional[int] = Field(default=None, ge=1, le=5)  # "did this feel like the right time?"

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, value: datetime) -> datetime:
        return DateService.ensure_aware(value)


class CalibrationProfile(BaseModel):
    active: bool
    acrophase: float
    acrophase_shift: float
    amplitude: float
    mesor: float
    sample_count: int
    confidence_level: ConfidenceBucket
    best_hours: List[int]
    worst_hours: List[int]
    completions_by_hour: Dict[int, int]
    post_lunch_dip_severity: float = 0.0
    evening_boost: float = 0.0
    cognitive_load_sensitivity: float = 1.0
    weekday_peak: int = 10
    weekend_peak: int = 11
    avg_timing_rating: Optional[float] = None
    insights: List[str] = []


class TimingFeedback(BaseModel):
    rating: int = Field(ge=1, le=5)


# Engine signals
class EngineSignal(BaseModel):
    kind: Literal[
        "warning", "decay", "recovery", "harmony",
        "aura_earned", "level_up", "daily_reset", "difficulty_changed"
    ]
    message: str
    value: Optional[float] = None


class EngineResult(BaseModel):
    state: EnergyState
    signals: List[EngineSignal] = []
