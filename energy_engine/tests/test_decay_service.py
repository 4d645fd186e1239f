"""
Tests for DecayService.

Tests cover:
1. Decay magnitude growth and per-call cap
2. Sleep window and daily cap
3. Warning rate limiting
4. Recovery detection
"""
import pytest
from datetime import timedelta

from energy_engine.schemas import DecayMonitor, EngineConfig
from energy_engine.services.decay_service import DecayService


@pytest.fixture
def decay_service(default_config):
    return DecayService(default_config)


@pytest.fixture
def charged_state(energy_service, fresh_state, now):
    """State with 200 energy whose last activity is now"""
    return energy_service.add_energy(fresh_state, "goals", 200, "Goal", now)


class TestDecayAmount:
    """Tests for calculate_decay_amount"""

    @pytest.mark.parametrize("hours,expected", [
        (0, 0),
        (3.9, 0),
        (4, 2),
        (6, 2),
        (9, 3),
        (14, 4),
        (40, 4),
    ])
    def test_growth_and_cap(self, decay_service, hours, expected):
        """floor(2 × (1 + 0.1 × (h − 4))), capped at 4"""
        assert decay_service.calculate_decay_amount(hours) == expected

    def test_custom_base_rate(self):
        service = DecayService(EngineConfig(decay_base_rate=-5))
        assert service.calculate_decay_amount(4) == 5
        assert service.calculate_decay_amount(100) == 10


class TestApplyDecay:
    """Tests for apply_decay"""

    def test_never_increases_energy(self, decay_service, charged_state, now):
        for hours in range(0, 30):
            result = decay_service.apply_decay(charged_state, hours, now + timedelta(hours=hours))
            assert result.total_energy <= charged_state.total_energy

    def test_applies_after_start(self, decay_service, charged_state, now):
        later = now + timedelta(hours=5)
        state = decay_service.apply_decay(charged_state, 5, later)

        assert state.total_energy == 198
        assert state.entries[-1].amount == -2

    def test_no_decay_while_sleeping(self, decay_service, charged_state, now):
        """23:00 is inside the default 22:00-07:00 window"""
        late = now.replace(hour=23)
        assert decay_service.apply_decay(charged_state, 9, late) is charged_state

    def test_no_decay_before_start(self, decay_service, charged_state, now):
        assert decay_service.apply_decay(charged_state, 3, now + timedelta(hours=3)) is charged_state

    def test_daily_cap(self, charged_state, now):
        """Cumulative decay on one day never exceeds max_decay_per_day"""
        service = DecayService(EngineConfig(max_decay_per_day=10))
        state = charged_state

        for tick in range(10):
            state = service.apply_decay(state, 20, now + timedelta(minutes=tick))

        assert charged_state.total_energy - state.total_energy == 10
        assert service.decay_applied_today(state, now) == 10

    def test_cap_resets_on_new_day(self, energy_service, charged_state, now):
        service = DecayService(EngineConfig(max_decay_per_day=4))
        state = service.apply_decay(charged_state, 20, now)
        assert service.remaining_daily_allowance(state, now) == 0

        tomorrow = now + timedelta(days=1)
        state = energy_service.reset_energy_if_needed(state, tomorrow)
        assert service.remaining_daily_allowance(state, tomorrow) == 4

    def test_zero_energy_stays_zero(self, decay_service, fresh_state, now):
        state = decay_service.apply_decay(fresh_state, 20, now)
        assert state.total_energy == 0
        assert state.entries == []


class TestEvaluate:
    """Tests for evaluate"""

    def test_recent_activity(self, decay_service, charged_state, now):
        _, _, evaluation = decay_service.evaluate(charged_state, DecayMonitor(), now + timedelta(hours=1))
        assert evaluation.signal == "none"

    def test_warning_zone(self, decay_service, charged_state, now):
        """Between 3 and 4 hours a warning is raised once"""
        at = now + timedelta(hours=3, minutes=10)
        state, monitor, evaluation = decay_service.evaluate(charged_state, DecayMonitor(), at)

        assert evaluation.signal == "warning"
        assert monitor.last_warning_at == at
        assert state is charged_state

        _, _, again = decay_service.evaluate(state, monitor, at + timedelta(minutes=20))
        assert again.signal == "none"

    def test_decay_zone(self, decay_service, charged_state, now):
        state, _, evaluation = decay_service.evaluate(charged_state, DecayMonitor(), now + timedelta(hours=6))

        assert evaluation.signal == "decay"
        assert evaluation.amount == 2
        assert state.total_energy == 198

    def test_report_only_tick(self, decay_service, charged_state, now):
        """apply=False never mutates the ledger"""
        state, _, evaluation = decay_service.evaluate(
            charged_state, DecayMonitor(), now + timedelta(hours=6), apply=False
        )
        assert evaluation.signal == "none"
        assert state is charged_state

    def test_sleeping(self, decay_service, charged_state, now):
        _, _, evaluation = decay_service.evaluate(charged_state, DecayMonitor(), now.replace(hour=23))
        assert evaluation.signal == "sleeping"


class TestRecovery:
    """Tests for is_recovery"""

    @pytest.mark.parametrize("gap,expected", [
        (2, False),
        (11.9, False),
        (12, True),
        (18, True),
        (24, True),
        (30, False),
    ])
    def test_recovery_window(self, decay_service, now, gap, expected):
        assert decay_service.is_recovery(now - timedelta(hours=gap), now) is expected
