"""Tests for TurnClock — per-turn deadlines."""

from gridmatch.game.clock import TurnClock


class TestTurnClock:
    def test_no_deadline_until_started(self):
        clock = TurnClock(30)
        assert clock.deadline is None
        assert clock.expired(1_000_000.0) is False
        assert clock.remaining(5.0) == 30.0

    def test_start_turn_sets_deadline(self):
        clock = TurnClock(30)
        clock.start_turn(100.0)
        assert clock.deadline == 130.0

    def test_remaining_counts_down(self):
        clock = TurnClock(30)
        clock.start_turn(0.0)
        assert clock.remaining(10.0) == 20.0
        assert clock.remaining(45.0) == 0.0

    def test_remaining_seconds_rounds_up(self):
        clock = TurnClock(30)
        clock.start_turn(0.0)
        assert clock.remaining_seconds(0.0) == 30
        assert clock.remaining_seconds(0.5) == 30
        assert clock.remaining_seconds(29.9) == 1
        assert clock.remaining_seconds(31.0) == 0

    def test_expired_at_exact_deadline(self):
        clock = TurnClock(30)
        clock.start_turn(0.0)
        assert clock.expired(29.9) is False
        assert clock.expired(30.0) is True

    def test_restart_moves_deadline(self):
        clock = TurnClock(30)
        clock.start_turn(0.0)
        clock.start_turn(20.0)
        assert clock.expired(30.0) is False
        assert clock.expired(50.0) is True

    def test_clear(self):
        clock = TurnClock(30)
        clock.start_turn(0.0)
        clock.clear()
        assert clock.deadline is None
        assert clock.expired(100.0) is False
