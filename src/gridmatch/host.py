"""LocalHost — runs matches in-process.

Plays the part of the realtime server: builds engines from the registry,
turns presences into join/leave calls, queues client messages and runs one
engine tick per ``step``. Each match gets its own dispatcher, referee and
(optionally) JSONL telemetry log. Calls for one match are serial.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field

from gridmatch.config import ServerConfig
from gridmatch.core.ranking import RankingStore
from gridmatch.core.referee import Referee
from gridmatch.core.telemetry import MatchLog
from gridmatch.game.engine import MatchEngine
from gridmatch.game.events import MatchMessage, RecordingDispatcher
from gridmatch.game.reporter import OutcomeReporter
from gridmatch.game.state import MatchState, Player
from gridmatch.registry import MatchRegistry

logger = logging.getLogger(__name__)


@dataclass
class HostedMatch:
    """Everything the host keeps for one running match."""

    match_id: str
    label: str
    engine: MatchEngine
    state: MatchState
    tick_rate: int
    dispatcher: RecordingDispatcher
    match_log: MatchLog | None = None
    inbox: list[MatchMessage] = field(default_factory=list)

    @property
    def tick_interval_s(self) -> float:
        return 1.0 / self.tick_rate


class LocalHost:
    """In-process host for one or more independent matches."""

    def __init__(
        self,
        config: ServerConfig,
        registry: MatchRegistry,
        ranking_store: RankingStore,
        clock=time.monotonic,
    ) -> None:
        self.config = config
        self.registry = registry
        self.reporter = OutcomeReporter(ranking_store, board_id=config.ranking.board_id)
        self._clock = clock
        self._matches: dict[str, HostedMatch] = {}

    # ------------------------------------------------------------------
    # Match lifecycle
    # ------------------------------------------------------------------

    def create_match(self, label: str, params: dict | None = None) -> str:
        params = dict(params or {})
        match_id = str(params.get("match_id") or uuid.uuid4().hex)
        params["match_id"] = match_id

        dispatcher = RecordingDispatcher()
        match_log = None
        if self.config.telemetry_dir is not None:
            match_log = MatchLog(
                self.config.telemetry_dir,
                match_id,
                context={"label": label},
            )

        engine = self.registry.create(
            label,
            dispatcher=dispatcher,
            reporter=self.reporter,
            match_log=match_log,
            referee=Referee(),
        )
        state, tick_rate, engine_label = engine.init(params)
        logger.debug("Hosting match %s under label %s", match_id, engine_label)
        self._matches[match_id] = HostedMatch(
            match_id=match_id,
            label=engine_label,
            engine=engine,
            state=state,
            tick_rate=tick_rate,
            dispatcher=dispatcher,
            match_log=match_log,
        )
        return match_id

    def match(self, match_id: str) -> HostedMatch:
        hosted = self._matches.get(match_id)
        if hosted is None:
            raise KeyError(f"Unknown match: {match_id}")
        return hosted

    def join(self, match_id: str, player: Player, now: float | None = None) -> tuple[bool, str]:
        hosted = self.match(match_id)
        hosted.state, accepted, reason = hosted.engine.join_attempt(hosted.state, player)
        if not accepted:
            return False, reason
        hosted.state = hosted.engine.join(hosted.state, [player], self._now(now))
        return True, ""

    def leave(self, match_id: str, player: Player, now: float | None = None) -> None:
        hosted = self.match(match_id)
        hosted.state = hosted.engine.leave(hosted.state, [player], self._now(now))

    def send(self, match_id: str, player: Player, data: bytes | str) -> None:
        """Queue a client message for the next tick."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.match(match_id).inbox.append(MatchMessage(sender=player, data=data))

    def step(self, match_id: str, now: float | None = None) -> MatchState:
        """Run one tick with everything queued since the previous one."""
        hosted = self.match(match_id)
        batch, hosted.inbox = hosted.inbox, []
        hosted.state = hosted.engine.tick(hosted.state, batch, self._now(now))
        return hosted.state

    def run_until_ended(
        self, match_id: str, start: float, max_ticks: int = 100_000,
    ) -> MatchState:
        """Tick on a simulated clock until the match ends or ``max_ticks``."""
        hosted = self.match(match_id)
        now = start
        for _ in range(max_ticks):
            if hosted.state.ended:
                break
            self.step(match_id, now)
            now += hosted.tick_interval_s
        return hosted.state

    def signal(self, match_id: str, data: str) -> str:
        hosted = self.match(match_id)
        hosted.state, reply = hosted.engine.signal(hosted.state, data)
        return reply

    def terminate(self, match_id: str, grace_seconds: int = 0) -> MatchState:
        hosted = self._matches.pop(match_id)
        state = hosted.engine.terminate(hosted.state, grace_seconds)
        self.reporter.forget(match_id)
        return state

    def match_ids(self) -> list[str]:
        return list(self._matches)

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now
