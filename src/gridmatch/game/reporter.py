"""OutcomeReporter — turns an ended match into a leaderboard record."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from gridmatch.core.ranking import RankingStore
from gridmatch.game.state import MatchState, Mode

logger = logging.getLogger(__name__)

DEFAULT_BOARD_ID = "TicTacToeLeaderboard"

# Timed matches are worth more, whatever the cause of the win.
_MODE_SCORES = {Mode.STANDARD: 1, Mode.TIMED: 2}


@dataclass(frozen=True)
class ResultRecord:
    board_id: str
    player_id: str
    display_name: str
    score: int
    metadata: dict = field(default_factory=dict)


class OutcomeReporter:
    """Hands each decisive match result to the ranking store exactly once.

    Store failures are logged and swallowed: the in-memory outcome is
    already final and authoritative.
    """

    def __init__(self, store: RankingStore, board_id: str = DEFAULT_BOARD_ID) -> None:
        self._store = store
        self._board_id = board_id
        self._reported: set[str] = set()

    @property
    def board_id(self) -> str:
        return self._board_id

    @staticmethod
    def score_for(mode: Mode) -> int:
        return _MODE_SCORES[mode]

    def build_record(self, state: MatchState, now: float) -> ResultRecord | None:
        outcome = state.outcome
        if outcome is None or outcome.winner_id is None:
            return None
        winner = state.player(outcome.winner_id)
        metadata: dict = {
            "symbol": outcome.symbol,
            "mode": state.mode.value,
        }
        if state.mode is Mode.TIMED and state.clock is not None:
            metadata["time_remaining"] = state.clock.remaining_seconds(now)
        return ResultRecord(
            board_id=self._board_id,
            player_id=outcome.winner_id,
            display_name=winner.username if winner else "",
            score=self.score_for(state.mode),
            metadata=metadata,
        )

    def report(self, state: MatchState, now: float) -> ResultRecord | None:
        if not state.ended:
            raise RuntimeError(f"Match {state.match_id} has not ended")
        if state.match_id in self._reported:
            logger.warning("Outcome for match %s already reported", state.match_id)
            return None
        self._reported.add(state.match_id)

        record = self.build_record(state, now)
        if record is None:
            logger.info("Match %s ended without a winner, nothing to record", state.match_id)
            return None

        try:
            self._store.record_result(
                record.board_id,
                record.player_id,
                record.display_name,
                record.score,
                record.metadata,
            )
        except Exception as exc:
            logger.error(
                "Failed to write leaderboard record for %s in match %s: %s",
                record.player_id, state.match_id, exc,
            )
        else:
            logger.info(
                "Wrote leaderboard record for %s: %d points (%s mode)",
                record.display_name or record.player_id, record.score, state.mode.value,
            )
        return record

    def forget(self, match_id: str) -> None:
        """Drop the once-only marker for a match the host no longer runs."""
        self._reported.discard(match_id)
