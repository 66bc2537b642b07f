"""Tests for MatchState and its enums."""

import logging

import pytest

from gridmatch.game.state import (
    Cause,
    MatchState,
    Mode,
    Outcome,
    Phase,
    Player,
)


@pytest.fixture
def state():
    return MatchState(match_id="m-1", mode=Mode.STANDARD)


class TestModeResolve:
    @pytest.mark.parametrize("value,expected", [
        ("standard", Mode.STANDARD),
        ("timed", Mode.TIMED),
        ("TIMED", Mode.TIMED),
        ("classic", Mode.STANDARD),
        (Mode.TIMED, Mode.TIMED),
    ])
    def test_known_values(self, value, expected):
        assert Mode.resolve(value, Mode.STANDARD) is expected

    def test_missing_uses_default(self):
        assert Mode.resolve(None, Mode.TIMED) is Mode.TIMED

    def test_unknown_falls_back_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="gridmatch.game.state"):
            assert Mode.resolve("blitz", Mode.STANDARD) is Mode.STANDARD
        assert "blitz" in caplog.text

    def test_non_string_falls_back(self):
        assert Mode.resolve(42, Mode.TIMED) is Mode.TIMED


class TestRoster:
    def test_lookup_helpers(self, state):
        alice, bob = Player("alice", "Alice"), Player("bob", "Bob")
        state.roster.extend([alice, bob])
        assert state.has_player("alice")
        assert not state.has_player("carol")
        assert state.player("bob") == bob
        assert state.player("carol") is None
        assert state.opponent_of("alice") == bob
        assert state.opponent_of("bob") == alice

    def test_opponent_of_alone(self, state):
        state.roster.append(Player("alice"))
        assert state.opponent_of("alice") is None

    def test_next_symbol_takes_free_symbol(self, state):
        assert state.next_symbol() == "X"
        state.roster.append(Player("alice"))
        state.symbol_of["alice"] = "X"
        assert state.next_symbol() == "O"

    def test_next_symbol_ignores_departed_players(self, state):
        state.roster.append(Player("alice"))
        state.symbol_of.update({"alice": "X", "bob": "O"})
        assert state.next_symbol() == "O"

    def test_next_symbol_cycles_when_all_held(self, state):
        state.roster.extend([Player("alice"), Player("bob")])
        state.symbol_of.update({"alice": "X", "bob": "O"})
        assert state.next_symbol() == "X"

    def test_next_symbol_excludes_joiner(self, state):
        state.roster.extend([Player("alice"), Player("carol")])
        state.symbol_of["alice"] = "X"
        assert state.next_symbol(joining="carol") == "O"


class TestPhase:
    def test_starts_in_lobby(self, state):
        assert state.phase is Phase.LOBBY
        assert state.outcome is None
        assert not state.ended

    def test_phase_cannot_go_back(self, state):
        state.advance_phase(Phase.IN_PROGRESS)
        with pytest.raises(ValueError):
            state.advance_phase(Phase.LOBBY)

    def test_finish_sets_outcome_once(self, state):
        state.finish(Outcome(cause=Cause.DRAW))
        assert state.ended
        assert state.outcome.cause is Cause.DRAW
        with pytest.raises(RuntimeError):
            state.finish(Outcome(cause=Cause.LINE, winner_id="alice", symbol="X"))
        assert state.outcome.cause is Cause.DRAW


class TestSnapshot:
    def test_snapshot_is_plain_data(self, state):
        state.roster.append(Player("alice"))
        state.symbol_of["alice"] = "X"
        state.turn = "alice"
        snap = state.snapshot()
        assert snap["board"] == [""] * 9
        assert snap["current_turn"] == "alice"
        assert snap["symbols"] == {"alice": "X"}
        assert snap["mode"] == "standard"
        assert snap["phase"] == "lobby"
        assert snap["outcome"] is None
        assert "time_remaining" not in snap

    def test_outcome_serialised(self, state):
        state.finish(Outcome(cause=Cause.LINE, winner_id="alice", symbol="X"))
        assert state.snapshot()["outcome"] == {
            "cause": "line", "winner_id": "alice", "symbol": "X",
        }
