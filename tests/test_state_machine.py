"""
Tests for the round state machine (pure functions over PoolState)
"""
import pytest

from core import state_machine
from models import PoolState, RoundPhase


def make_state(round_start=None, duration=600, round_id=1, balance=0):
    return PoolState(
        round_id=round_id,
        round_start=round_start,
        round_duration=duration,
        pool_balance=balance,
    )


class TestIsOpen:
    def test_untimed_round_is_open(self):
        state = make_state()
        assert state_machine.is_open(state, 10 ** 12)
        assert state_machine.ends_at(state) is None
        assert state_machine.time_remaining(state, 0) is None

    def test_open_until_end_exclusive(self):
        state = make_state(round_start=1000)

        assert state_machine.is_open(state, 1599)
        assert not state_machine.is_open(state, 1600)
        assert state_machine.ends_at(state) == 1600

    def test_phase(self):
        state = make_state(round_start=1000)

        assert state_machine.get_phase(state, 1000) == RoundPhase.OPEN
        assert state_machine.get_phase(state, 1600) == RoundPhase.AWAITING_DISTRIBUTION

    def test_time_remaining(self):
        state = make_state(round_start=1000)

        assert state_machine.time_remaining(state, 1100) == 500
        assert state_machine.time_remaining(state, 5000) == 0


class TestEligibility:
    def test_requires_closed_round_and_participants(self):
        state = make_state(round_start=1000)

        assert not state_machine.is_eligible_for_distribution(state, 3, 1500)
        assert not state_machine.is_eligible_for_distribution(state, 0, 1600)
        assert state_machine.is_eligible_for_distribution(state, 1, 1600)

    def test_untimed_round_is_never_eligible(self):
        assert not state_machine.is_eligible_for_distribution(make_state(), 3, 10 ** 12)


class TestTransitions:
    def test_start_timer_only_once(self):
        state = make_state()

        assert state_machine.start_timer(state, 1000)
        assert not state_machine.start_timer(state, 2000)
        assert state.round_start == 1000

    def test_advance_round_first_join(self):
        state = make_state(round_start=1000, round_id=7, balance=123)

        assert state_machine.advance_round(state, 1700, state_machine.FIRST_JOIN) == 8
        assert state.round_id == 8
        assert state.pool_balance == 0
        assert state.round_start is None

    def test_advance_round_creation(self):
        state = make_state(round_start=1000)

        state_machine.advance_round(state, 1700, state_machine.CREATION)
        assert state.round_start == 1700

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            state_machine.initial_round_start("sometimes", 0)
