from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, Text
from datetime import datetime

from energy_engine.database import Base


class Settings(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)

    # Local day boundaries
    timezone = Column(String, default="UTC")
    history_retention_days = Column(Integer, default=30)

    # Inactivity decay: magnitude = |base| * (1 + 0.1 * (hours - start)), max 2 * |base|
    decay_base_rate = Column(Integer, default=-2)
    decay_warning_hours = Column(Float, default=3)
    decay_start_hours = Column(Float, default=4)
    max_decay_per_day = Column(Integer, default=50)
    sleep_start = Column(String, default="22:00")
    sleep_end = Column(String, default="07:00")
    recovery_min_hours = Column(Float, default=12)
    recovery_max_hours = Column(Float, default=24)

    # Adaptive difficulty
    difficulty_enabled = Column(Boolean, default=True)
    evaluation_days = Column(Integer, default=7)
    adjustment_threshold = Column(Integer, default=5)

    # Calibration
    calibration_min_samples = Column(Integer, default=10)


class EngineSnapshot(Base):
    """Single row holding the serialized engine state"""
    __tablename__ = "engine_snapshot"

    id = Column(Integer, primary_key=True, index=True)
    state_json = Column(Text, nullable=True)
    difficulty_json = Column(Text, nullable=True)
    decay_monitor_json = Column(Text, nullable=True)
    calibration_json = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
