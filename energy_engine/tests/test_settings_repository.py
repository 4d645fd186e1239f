"""
Tests for EngineConfig validation and SettingsRepository.

Tests cover:
1. Cross-field checks on the decay and recovery windows
2. Updates that would break the configuration are rejected
3. Stored rows that break it are reported
"""
import pytest
from pydantic import ValidationError

from energy_engine.exceptions import ValidationException
from energy_engine.repositories.settings_repository import SettingsRepository
from energy_engine.schemas import EngineConfig


class TestEngineConfig:
    """Tests for the EngineConfig cross-field checks"""

    def test_defaults_are_valid(self):
        config = EngineConfig()
        assert config.decay_warning_hours < config.decay_start_hours

    def test_warning_after_decay_start(self):
        with pytest.raises(ValidationError, match="decay_warning_hours"):
            EngineConfig(decay_warning_hours=5, decay_start_hours=4)

    def test_warning_equal_to_decay_start(self):
        """No warning band, but still a usable configuration"""
        assert EngineConfig(decay_warning_hours=4, decay_start_hours=4).decay_warning_hours == 4

    def test_recovery_window_inverted(self):
        with pytest.raises(ValidationError, match="recovery_min_hours"):
            EngineConfig(recovery_min_hours=30, recovery_max_hours=24)


class TestSettingsRepository:
    """Tests for SettingsRepository"""

    def test_get_creates_defaults(self, db_session):
        settings = SettingsRepository.get(db_session)

        assert settings.timezone == "UTC"
        assert SettingsRepository.get_config(db_session).model_dump() == EngineConfig().model_dump()

    def test_update(self, db_session):
        SettingsRepository.update(db_session, {"decay_start_hours": 6, "unknown": 1})
        assert SettingsRepository.get_config(db_session).decay_start_hours == 6

    def test_update_rejects_inverted_decay_window(self, db_session):
        with pytest.raises(ValidationException) as exc_info:
            SettingsRepository.update(db_session, {"decay_warning_hours": 8})

        assert "decay_warning_hours" in str(exc_info.value)
        assert SettingsRepository.get(db_session).decay_warning_hours == 3

    def test_update_rejects_inverted_recovery_window(self, db_session):
        with pytest.raises(ValidationException):
            SettingsRepository.update(db_session, {"recovery_min_hours": 48})

        assert SettingsRepository.get(db_session).recovery_min_hours == 12

    def test_update_rejects_bad_time(self, db_session):
        with pytest.raises(ValidationException) as exc_info:
            SettingsRepository.update(db_session, {"sleep_start": "25:00"})

        assert exc_info.value.field == "sleep_start"

    def test_get_config_reports_invalid_row(self, db_session):
        settings = SettingsRepository.get(db_session)
        settings.recovery_max_hours = 6
        db_session.commit()

        with pytest.raises(ValidationException):
            SettingsRepository.get_config(db_session)
