"""MatchEngine — authoritative tick-driven tic-tac-toe match.

One engine instance per match. The host calls the lifecycle methods
(init, join_attempt, join, leave, terminate, signal) as they happen and
``tick`` once per fixed interval with the messages queued since the last
tick. Every call for one match runs serially, so the engine never locks.

Within a tick the order is fixed:

1. timed mode: an expired turn clock forfeits the turn-holder and ends
   the match; the rest of the tick is skipped;
2. timed mode: every ``time_update_ticks`` ticks, a time-remaining update;
3. messages in arrival order; the first win or draw ends the match and
   the remaining messages of the batch are dropped;
4. the inbound buffer is cleared.

Rejected messages never change state; the sender gets a private
MOVE_REJECTED and processing continues with the next message.
"""

from __future__ import annotations

import logging
import uuid

from gridmatch.config import EngineConfig
from gridmatch.core.parser import MoveParser
from gridmatch.core.referee import Referee
from gridmatch.core.sanitizer import sanitize_name
from gridmatch.core.telemetry import MatchLog, TelemetryEntry
from gridmatch.game.board import (
    RejectReason,
    apply_move,
    check_win,
    is_draw,
    is_legal_move,
)
from gridmatch.game.clock import TurnClock
from gridmatch.game.events import Dispatcher, MatchMessage, OpCode
from gridmatch.game.reporter import OutcomeReporter
from gridmatch.game.state import (
    Cause,
    MatchState,
    Mode,
    Outcome,
    Phase,
    Player,
)

__all__ = ["MatchEngine"]

logger = logging.getLogger(__name__)


class MatchEngine:
    """State machine for a single match: LOBBY -> IN_PROGRESS -> ENDED."""

    def __init__(
        self,
        config: EngineConfig,
        dispatcher: Dispatcher,
        reporter: OutcomeReporter,
        *,
        default_mode: Mode = Mode.STANDARD,
        label: str = "lobby",
        match_log: MatchLog | None = None,
        referee: Referee | None = None,
        parser: MoveParser | None = None,
    ) -> None:
        self._config = config
        self._dispatcher = dispatcher
        self._reporter = reporter
        self._default_mode = default_mode
        self._label = label
        self._match_log = match_log
        self._referee = referee or Referee()
        self._parser = parser or MoveParser()

    @property
    def label(self) -> str:
        return self._label

    @property
    def referee(self) -> Referee:
        return self._referee

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, params: dict | None = None) -> tuple[MatchState, int, str]:
        """Create the match state. Returns (state, tick_rate, label)."""
        params = params or {}
        requested = params.get("mode", params.get("game_mode"))
        mode = Mode.resolve(requested, self._default_mode)
        match_id = str(params.get("match_id") or uuid.uuid4().hex)

        state = MatchState(match_id=match_id, mode=mode)
        if mode is Mode.TIMED:
            state.clock = TurnClock(self._config.turn_limit_s)

        logger.info(
            "Match %s initialized: mode=%s label=%s tick_rate=%d",
            match_id, mode.value, self._label, self._config.tick_rate,
        )
        self._log(state, "init", payload={"mode": mode.value, "requested_mode": requested})
        return state, self._config.tick_rate, self._label

    def join_attempt(self, state: MatchState, player: Player) -> tuple[MatchState, bool, str]:
        """Admission decision only; never mutates state."""
        cap = self._config.max_players
        if cap is not None and not state.has_player(player.user_id) and len(state.roster) >= cap:
            logger.info(
                "Match %s rejected join from %s: full (%d players)",
                state.match_id, player.user_id, cap,
            )
            return state, False, "Match is full"
        return state, True, ""

    def join(self, state: MatchState, players: list[Player], now: float) -> MatchState:
        for player in players:
            uid = player.user_id
            if state.has_player(uid):
                logger.info("Player %s already in match %s, skipping", uid, state.match_id)
            else:
                state.roster.append(player)
                logger.info(
                    "Player %s joined match %s (total players: %d)",
                    uid, state.match_id, len(state.roster),
                )

                if uid not in state.symbol_of:
                    state.symbol_of[uid] = state.next_symbol(joining=uid)
                    logger.info("Assigned symbol %s to player %s", state.symbol_of[uid], uid)

                if not state.turn and not state.ended:
                    self._set_turn(state, uid, now)

            self._log(state, "join", player_id=uid, now=now)

        for player in players:
            self._dispatcher.broadcast(
                OpCode.WELCOME, self._welcome_payload(state), [player],
            )
            self._dispatcher.broadcast(
                OpCode.PLAYER_JOINED, self._joined_payload(state, player, now),
            )
        return state

    def leave(self, state: MatchState, players: list[Player], now: float) -> MatchState:
        for player in players:
            uid = player.user_id
            before = len(state.roster)
            state.roster = [p for p in state.roster if p.user_id != uid]
            if len(state.roster) == before:
                logger.debug("Player %s not in match %s, ignoring leave", uid, state.match_id)
                continue

            if state.turn == uid:
                successor = state.roster[0] if state.roster else None
                if successor is not None:
                    self._set_turn(state, successor.user_id, now)
                else:
                    state.turn = ""
                    if state.clock is not None:
                        state.clock.clear()

            logger.info("Player %s left match %s", uid, state.match_id)
            self._log(state, "leave", player_id=uid, now=now)
            self._dispatcher.broadcast(
                OpCode.PLAYER_LEFT,
                {
                    "message": "Player left the match",
                    "user_id": uid,
                    "total_players": len(state.roster),
                    "current_turn": state.turn,
                },
            )
        return state

    def tick(self, state: MatchState, messages: list[MatchMessage], now: float) -> MatchState:
        """Process one tick's batch of inbound messages."""
        state.tick += 1
        state.pending.extend(messages)
        try:
            if state.ended:
                for message in state.pending:
                    self._reject(state, message, RejectReason.MATCH_ENDED, now=now)
                return state

            if self._check_timeout(state, now):
                return state
            self._maybe_send_time_update(state, now)

            for message in state.pending:
                if self._process_message(state, message, now):
                    break
        finally:
            state.pending.clear()
        return state

    def terminate(self, state: MatchState, grace_seconds: int) -> MatchState:
        logger.info(
            "Match %s terminated (phase=%s, grace=%ds)",
            state.match_id, state.phase.value, grace_seconds,
        )
        if self._match_log is not None and not self._match_log.finalized:
            self._match_log.finalize_match(
                outcome=state.outcome.to_dict() if state.outcome else None,
                fidelity=self._referee.get_fidelity_report(),
                extra={"terminated": True, "mode": state.mode.value, "board": list(state.board)},
            )
        return state

    def signal(self, state: MatchState, data: str) -> tuple[MatchState, str]:
        logger.info("Match %s signal received: %r", state.match_id, data)
        return state, data

    # ------------------------------------------------------------------
    # Tick internals
    # ------------------------------------------------------------------

    def _check_timeout(self, state: MatchState, now: float) -> bool:
        """Forfeit an expired turn. Returns True if the match ended."""
        clock = state.clock
        if state.mode is not Mode.TIMED or clock is None or clock.deadline is None:
            return False
        if not clock.expired(now):
            return False

        winner = state.opponent_of(state.turn)
        if winner is None:
            logger.debug(
                "Turn expired for %s in match %s but no opponent is present",
                state.turn, state.match_id,
            )
            return False

        symbol = state.symbol_of.get(winner.user_id)
        logger.info("Time's up for player %s in match %s", state.turn, state.match_id)
        state.finish(Outcome(cause=Cause.TIMEOUT, winner_id=winner.user_id, symbol=symbol))
        self._log(
            state, "timeout", player_id=state.turn, now=now,
            payload={"winner_id": winner.user_id},
        )
        self._dispatcher.broadcast(
            OpCode.TIMEOUT_RESULT,
            {
                "message": f"Time's up! {symbol} wins by timeout!",
                "winner_id": winner.user_id,
                "board": list(state.board),
                "mode": state.mode.value,
                "timeout": True,
            },
        )
        self._end(state, now)
        return True

    def _maybe_send_time_update(self, state: MatchState, now: float) -> None:
        clock = state.clock
        if state.mode is not Mode.TIMED or clock is None or clock.deadline is None:
            return
        if state.tick % self._config.time_update_ticks != 0:
            return
        self._dispatcher.broadcast(
            OpCode.TIME_REMAINING,
            {
                "time_remaining": clock.remaining_seconds(now),
                "current_turn": state.turn,
            },
        )

    def _process_message(self, state: MatchState, message: MatchMessage, now: float) -> bool:
        """Validate and apply one move. Returns True if the match ended."""
        uid = message.sender.user_id

        decoded = self._parser.parse(message.data)
        if not decoded.success:
            self._reject(state, message, RejectReason.MALFORMED_MESSAGE, decoded.error, now)
            return False

        move = decoded.move
        payload = {"row": move.row, "col": move.col}
        check = is_legal_move(state.board, move.cell)
        if not check.legal:
            self._reject(state, message, check.reason, payload=payload, now=now)
            return False

        symbol = state.symbol_of.get(uid)
        if symbol is None or not state.has_player(uid) or (state.turn and state.turn != uid):
            self._reject(state, message, RejectReason.NOT_YOUR_TURN, payload=payload, now=now)
            return False

        state.board = apply_move(state.board, move.cell, symbol)
        if state.phase is Phase.LOBBY:
            state.advance_phase(Phase.IN_PROGRESS)
        self._referee.record_accepted(uid)
        logger.debug("Match %s: %s played %s at cell %d", state.match_id, uid, symbol, move.cell)
        self._log(state, "move", player_id=uid, payload=payload, now=now)

        if check_win(state.board, symbol):
            state.finish(Outcome(cause=Cause.LINE, winner_id=uid, symbol=symbol))
            logger.info("Match %s won by %s (%s)", state.match_id, uid, symbol)
            self._dispatcher.broadcast(
                OpCode.WIN_RESULT,
                {
                    "message": f"We have a winner! {symbol} wins in {state.mode.value} mode!",
                    "winner_id": uid,
                    "board": list(state.board),
                    "mode": state.mode.value,
                },
            )
            self._end(state, now)
            return True

        if is_draw(state.board):
            state.finish(Outcome(cause=Cause.DRAW))
            logger.info("Match %s ended in a draw", state.match_id)
            self._dispatcher.broadcast(
                OpCode.DRAW_RESULT,
                {
                    "message": f"It's a draw in {state.mode.value} mode!",
                    "board": list(state.board),
                    "mode": state.mode.value,
                },
            )
            self._end(state, now)
            return True

        # Turn rotation is defined for two players only.
        if len(state.roster) == 2:
            other = state.opponent_of(uid)
            self._set_turn(state, other.user_id, now)

        update = {
            "board": list(state.board),
            "current_turn": state.turn,
            "mode": state.mode.value,
        }
        if state.clock is not None:
            update["time_remaining"] = state.clock.remaining_seconds(now)
        self._dispatcher.broadcast(OpCode.BOARD_UPDATE, update)
        return False

    def _reject(
        self,
        state: MatchState,
        message: MatchMessage,
        reason: RejectReason,
        details: str | None = None,
        now: float | None = None,
        payload: dict | None = None,
    ) -> None:
        uid = message.sender.user_id
        self._referee.record_rejection(uid, reason, state.tick, details or "")
        logger.debug(
            "Match %s rejected message from %s: %s%s",
            state.match_id, uid, reason.key, f" ({details})" if details else "",
        )
        self._log(
            state, "reject", player_id=uid, payload=payload, now=now,
            accepted=False, reason=reason.key,
        )
        self._dispatcher.broadcast(
            OpCode.MOVE_REJECTED,
            {"error": reason.value, "reason": reason.key},
            [message.sender],
        )

    def _set_turn(self, state: MatchState, user_id: str, now: float) -> None:
        state.turn = user_id
        if state.mode is Mode.TIMED and state.clock is not None and not state.ended:
            state.clock.start_turn(now)

    def _end(self, state: MatchState, now: float) -> None:
        self._reporter.report(state, now)
        if self._match_log is not None:
            self._match_log.finalize_match(
                outcome=state.outcome.to_dict(),
                fidelity=self._referee.get_fidelity_report(),
                extra={"mode": state.mode.value, "board": list(state.board), "ticks": state.tick},
            )

    # ------------------------------------------------------------------
    # Payloads / telemetry
    # ------------------------------------------------------------------

    def _welcome_payload(self, state: MatchState) -> dict:
        data = {
            "message": f"Welcome to {state.mode.value} mode!",
            "player_count": len(state.roster),
            "mode": state.mode.value,
        }
        if state.clock is not None:
            data["turn_time_limit"] = int(state.clock.limit_s)
        return data

    def _joined_payload(self, state: MatchState, player: Player, now: float) -> dict:
        data = {
            "message": "New player joined!",
            "user_id": player.user_id,
            "username": sanitize_name(player.username),
            "total_players": len(state.roster),
            "current_turn": state.turn,
            "board": list(state.board),
            "symbol": state.symbol_of.get(player.user_id),
            "symbols": dict(state.symbol_of),
            "mode": state.mode.value,
        }
        if state.clock is not None:
            data["turn_time_limit"] = int(state.clock.limit_s)
            data["time_remaining"] = state.clock.remaining_seconds(now)
        return data

    def _log(
        self,
        state: MatchState,
        event: str,
        *,
        player_id: str | None = None,
        payload: dict | None = None,
        now: float | None = None,
        accepted: bool = True,
        reason: str | None = None,
    ) -> None:
        if self._match_log is None:
            return
        self._match_log.log_event(
            TelemetryEntry(
                tick=state.tick,
                event=event,
                player_id=player_id,
                payload=payload,
                accepted=accepted,
                reason=reason,
                state_snapshot=state.snapshot(now),
            )
        )
