"""
Engine-wide constants.
Thresholds, multiplier bands and base energy values shared by all services.
"""

# Energy sources (closed set)
SOURCE_TASKS = "tasks"
SOURCE_GOALS = "goals"
SOURCE_MILESTONES = "milestones"
SOURCE_STEPS = "steps"
SOURCE_ACHIEVEMENTS = "achievements"
SOURCE_HEALTH = "health"
ENERGY_SOURCES = (
    SOURCE_TASKS,
    SOURCE_GOALS,
    SOURCE_MILESTONES,
    SOURCE_STEPS,
    SOURCE_ACHIEVEMENTS,
    SOURCE_HEALTH,
)

# Reserved marker for inactivity decay entries
DECAY_SOURCE = "decay"

# Display modes (rendering hint only)
DISPLAY_MODE_POINTS = "points"
DISPLAY_MODE_AURA = "aura"

# ROYGBIV color levels: (name, color_name, hex, energy_required)
COLOR_LEVELS = (
    ("Spark", "red", "#ef4444", 0),
    ("Flame", "orange", "#f97316", 100),
    ("Glow", "yellow", "#eab308", 200),
    ("Flow", "green", "#22c55e", 300),
    ("Depth", "blue", "#3b82f6", 400),
    ("Vision", "indigo", "#6366f1", 500),
    ("Mastery", "violet", "#a855f7", 600),
)
COLOR_THRESHOLDS = tuple(level[3] for level in COLOR_LEVELS)
MAX_COLOR_INDEX = len(COLOR_THRESHOLDS) - 1

# Resonance multiplier bands: (min_resonance, multiplier), highest first
RESONANCE_MULTIPLIER_BANDS = (
    (90, 2.0),
    (80, 1.5),
    (60, 1.2),
    (40, 1.0),
    (20, 0.8),
    (0, 0.6),
)
RESONANCE_MIN = 0
RESONANCE_MAX = 100

# Resonance status buckets
RESONANCE_STATUS_LOW = "low"
RESONANCE_STATUS_MEDIUM = "medium"
RESONANCE_STATUS_HIGH = "high"
RESONANCE_STATUS_FLOW = "flow"

# Streak: (min_days, bonus), highest first
HIGH_RESONANCE_THRESHOLD = 80
STREAK_BONUS_STEPS = (
    (7, 50),
    (5, 30),
    (3, 15),
)
HARMONY_MIN_COMPLETIONS = 5

# Base energy values
TASK_ENERGY = {"low": 10, "medium": 20, "high": 30}
GOAL_ENERGY = {"small": 50, "medium": 100, "large": 200}
MILESTONE_ENERGY = 100
STEP_ENERGY = 5
EVENT_ENERGY = 15
ACHIEVEMENT_ENERGY = {"bronze": 25, "silver": 50, "gold": 100, "platinum": 150}
HEALTH_ENERGY = {"hydration": 5, "steps": 15, "workout": 25, "sleep": 20}

# Prediction
PREDICTION_COMPLETION_PERCENT = 70
DEFAULT_HISTORICAL_AVERAGE = 300
DEFAULT_GOAL_THRESHOLD = 300  # Green
MAX_ACHIEVABLE_TASKS = 5
CONFIDENCE_BASE = 0.5
CONFIDENCE_CAP = 1.0
CONFIDENCE_HIGH = 0.7
CONFIDENCE_MEDIUM = 0.5

# Difficulty tiers: name -> (label, multiplier, description)
DIFFICULTY_EASY = "easy"
DIFFICULTY_NORMAL = "normal"
DIFFICULTY_HARD = "hard"
DIFFICULTY_EXPERT = "expert"
DIFFICULTY_ORDER = (DIFFICULTY_EASY, DIFFICULTY_NORMAL, DIFFICULTY_HARD, DIFFICULTY_EXPERT)
DIFFICULTY_TIERS = {
    DIFFICULTY_EASY: ("Easy", 0.7, "Lower thresholds for a gentler pace"),
    DIFFICULTY_NORMAL: ("Normal", 1.0, "Standard energy requirements"),
    DIFFICULTY_HARD: ("Hard", 1.2, "Increased thresholds for high achievers"),
    DIFFICULTY_EXPERT: ("Expert", 1.5, "Maximum challenge for elite performers"),
}
DEFAULT_AVG_COLOR_LEVEL = 2.0
PROMOTE_LEVEL = 4.5
EASY_PROMOTE_LEVEL = 3.5
DEMOTE_LEVEL = 1.5

# Circadian model
DEFAULT_ACROPHASE = 10.5
DEFAULT_AMPLITUDE = 0.30
DEFAULT_MESOR = 0.65
CURVE_MIN = 0.30
CURVE_MAX = 0.95
ACROPHASE_MIN = 6.0
ACROPHASE_MAX = 18.0
CALIBRATION_HOUR_START = 6
CALIBRATION_HOUR_END = 22
CALIBRATION_PEAK_HOURS = 5
CALIBRATION_FULL_WEIGHT_SAMPLES = 50
CALIBRATION_MEDIUM_SAMPLES = 20
MAX_CALIBRATION_SAMPLES = 500
HIGH_PRIORITY_LEVELS = ("high", "urgent")

# Calibration adjustments (hour ranges are inclusive, local time)
MORNING_HOURS = (9, 11)
POST_LUNCH_HOURS = (13, 14)
EVENING_HOURS = (17, 21)
MIN_MORNING_SAMPLES = 6
STRONG_DIP_RATIO = 0.3
MILD_DIP_RATIO = 0.7
STRONG_DIP_SEVERITY = 0.10
MILD_DIP_SEVERITY = -0.05
EVENING_RATIO = 0.3
EVENING_BOOST = 0.10
HIGH_CONCURRENCY = 3  # more than this many open tasks
LOW_CONCURRENCY = 2  # at most this many open tasks
MIN_CONCURRENCY_SAMPLES = 5
MULTITASK_RATIO = 0.5
DEFAULT_LOAD_SENSITIVITY = 1.0
MULTITASKER_LOAD_SENSITIVITY = 0.75
FOCUSED_LOAD_SENSITIVITY = 1.25
DEFAULT_WEEKDAY_PEAK = 10
DEFAULT_WEEKEND_PEAK = 11
MIN_WEEKDAY_SAMPLES = 10
MIN_WEEKEND_SAMPLES = 5

# Logging defaults
DEFAULT_LOG_DIRECTORY_PROD = "/var/log/energy-engine"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"
