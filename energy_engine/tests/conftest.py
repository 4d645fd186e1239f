"""
Shared fixtures for energy engine tests.
"""
import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from energy_engine import models  # noqa: F401  registers tables with Base
from energy_engine.database import Base
from energy_engine.schemas import DailyHistorySnapshot, EngineConfig
from energy_engine.services.energy_service import EnergyService


@pytest.fixture
def session_factory():
    """Sessionmaker bound to a fresh in-memory SQLite database"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def default_config():
    return EngineConfig()


@pytest.fixture
def now():
    """Tuesday afternoon in UTC, outside the default sleep window"""
    return datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def today(now):
    return now.date()


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)


@pytest.fixture
def energy_service(default_config):
    return EnergyService(default_config)


@pytest.fixture
def fresh_state(energy_service, now):
    return energy_service.create_initial_state(now)


@pytest.fixture
def make_history(today):
    """Build history snapshots for the days before today, oldest first"""
    def _make(totals, resonances=None):
        resonances = resonances or [None] * len(totals)
        days = len(totals)
        return [
            DailyHistorySnapshot(
                date=today - timedelta(days=days - i),
                total_energy=total,
                avg_resonance=resonance,
            )
            for i, (total, resonance) in enumerate(zip(totals, resonances))
        ]
    return _make
