"""TurnClock — per-turn deadline for timed matches.

Times are plain float seconds supplied by the caller (the live host passes
``time.monotonic()``), so expiry is only ever observed on a tick.
"""

from __future__ import annotations

import math


class TurnClock:
    """Tracks the deadline of the current turn."""

    def __init__(self, limit_s: float = 30.0) -> None:
        self._limit_s = float(limit_s)
        self._deadline: float | None = None

    @property
    def limit_s(self) -> float:
        return self._limit_s

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def start_turn(self, now: float) -> None:
        self._deadline = now + self._limit_s

    def clear(self) -> None:
        self._deadline = None

    def remaining(self, now: float) -> float:
        """Seconds left on the current turn. Informational only."""
        if self._deadline is None:
            return self._limit_s
        return max(0.0, self._deadline - now)

    def remaining_seconds(self, now: float) -> int:
        """Whole seconds left, rounded up (what clients display)."""
        return int(math.ceil(self.remaining(now)))

    def expired(self, now: float) -> bool:
        if self._deadline is None:
            return False
        return now >= self._deadline
