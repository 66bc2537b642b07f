"""MatchState — the mutable snapshot owned by a single MatchEngine.

Only the engine mutates a MatchState, and it does so serially, so nothing
here is locked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from gridmatch.game.board import Board, Symbol, new_board
from gridmatch.game.clock import TurnClock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Player:
    """Opaque session identity handed over by the host."""

    user_id: str
    username: str = ""


class Mode(str, Enum):
    STANDARD = "standard"
    TIMED = "timed"

    @classmethod
    def resolve(cls, value: object, default: Mode) -> Mode:
        """Map a creation parameter to a Mode, falling back to ``default``.

        ``"classic"`` is accepted as an older name for Standard.
        """
        if value is None:
            return default
        if isinstance(value, Mode):
            return value
        if isinstance(value, str):
            name = value.strip().lower()
            if name == "classic":
                return cls.STANDARD
            for mode in cls:
                if mode.value == name:
                    return mode
        logger.warning(
            "Unrecognized match mode %r, falling back to %s", value, default.value
        )
        return default


class Phase(Enum):
    LOBBY = "lobby"
    IN_PROGRESS = "in_progress"
    ENDED = "ended"


_PHASE_ORDER = {Phase.LOBBY: 0, Phase.IN_PROGRESS: 1, Phase.ENDED: 2}


class Cause(Enum):
    LINE = "line"
    DRAW = "draw"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Outcome:
    """Final result of a match. ``winner_id`` is None for a draw."""

    cause: Cause
    winner_id: str | None = None
    symbol: str | None = None

    def to_dict(self) -> dict:
        return {
            "cause": self.cause.value,
            "winner_id": self.winner_id,
            "symbol": self.symbol,
        }


@dataclass
class MatchState:
    match_id: str
    mode: Mode
    roster: list[Player] = field(default_factory=list)
    symbol_of: dict[str, str] = field(default_factory=dict)
    board: Board = field(default_factory=new_board)
    turn: str = ""
    clock: TurnClock | None = None
    phase: Phase = Phase.LOBBY
    outcome: Outcome | None = None
    tick: int = 0
    pending: list = field(default_factory=list)

    # ------------------------------------------------------------------
    # Roster helpers
    # ------------------------------------------------------------------

    def has_player(self, user_id: str) -> bool:
        return any(p.user_id == user_id for p in self.roster)

    def player(self, user_id: str) -> Player | None:
        for p in self.roster:
            if p.user_id == user_id:
                return p
        return None

    def opponent_of(self, user_id: str) -> Player | None:
        """First present roster member other than ``user_id``."""
        for p in self.roster:
            if p.user_id != user_id:
                return p
        return None

    def next_symbol(self, joining: str | None = None) -> str:
        """Symbol for a first-time joiner.

        The first symbol no present player holds; when every symbol is
        taken, cyclic in order of first join.
        """
        order = (Symbol.FIRST, Symbol.SECOND)
        held = {
            self.symbol_of[p.user_id]
            for p in self.roster
            if p.user_id != joining and p.user_id in self.symbol_of
        }
        for symbol in order:
            if symbol.value not in held:
                return symbol.value
        return order[len(self.symbol_of) % len(order)].value

    # ------------------------------------------------------------------
    # Phase / outcome
    # ------------------------------------------------------------------

    @property
    def ended(self) -> bool:
        return self.phase is Phase.ENDED

    def advance_phase(self, phase: Phase) -> None:
        """Move the phase forward. Phases never go backwards."""
        if _PHASE_ORDER[phase] < _PHASE_ORDER[self.phase]:
            raise ValueError(
                f"Cannot move phase from {self.phase.value} back to {phase.value}"
            )
        self.phase = phase

    def finish(self, outcome: Outcome) -> None:
        """Record the outcome and end the match. Only ever called once."""
        if self.outcome is not None:
            raise RuntimeError(f"Match {self.match_id} already has an outcome")
        self.outcome = outcome
        self.advance_phase(Phase.ENDED)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def snapshot(self, now: float | None = None) -> dict:
        snap = {
            "match_id": self.match_id,
            "mode": self.mode.value,
            "phase": self.phase.value,
            "board": list(self.board),
            "current_turn": self.turn,
            "players": [p.user_id for p in self.roster],
            "symbols": dict(self.symbol_of),
            "tick": self.tick,
            "outcome": self.outcome.to_dict() if self.outcome else None,
        }
        if self.clock is not None and now is not None:
            snap["time_remaining"] = self.clock.remaining_seconds(now)
        return snap
