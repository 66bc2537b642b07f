"""Referee — rejection tracking and fidelity reporting.

One Referee instance per match. Records every inbound message the engine
refused, per player, and produces a fidelity report at match end. The
referee never changes match state; rejected moves are always recovered
locally by the engine.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from gridmatch.game.board import RejectReason


@dataclass
class _RejectionRecord:
    reason: RejectReason
    tick: int
    details: str


class Referee:
    """Tracks rejected messages for a single match."""

    def __init__(self) -> None:
        self._rejections: dict[str, list[_RejectionRecord]] = defaultdict(list)
        self._accepted: dict[str, int] = defaultdict(int)

    def record_rejection(
        self, player_id: str, reason: RejectReason, tick: int, details: str = ""
    ) -> int:
        """Record a refused message. Returns the player's rejection count."""
        self._rejections[player_id].append(
            _RejectionRecord(reason=reason, tick=tick, details=details)
        )
        return len(self._rejections[player_id])

    def record_accepted(self, player_id: str) -> None:
        self._accepted[player_id] += 1

    def rejections(self, player_id: str) -> int:
        return len(self._rejections.get(player_id, []))

    def get_fidelity_report(self) -> dict:
        report = {}
        players = set(self._rejections) | set(self._accepted)
        for player_id in sorted(players):
            records = self._rejections.get(player_id, [])
            counts = {
                "moves_accepted": self._accepted.get(player_id, 0),
                "total_rejections": len(records),
            }
            for reason in RejectReason:
                counts[reason.key] = 0
            for r in records:
                counts[r.reason.key] += 1
            report[player_id] = counts
        return report
