"""Outbound broadcast events and the dispatcher the engine sends them through.

The host owns delivery. The engine only decides what to send and to whom:
``recipients=None`` means every player currently in the match.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import IntEnum

from gridmatch.game.state import Player


class OpCode(IntEnum):
    WELCOME = 1
    PLAYER_JOINED = 2
    PLAYER_LEFT = 3
    BOARD_UPDATE = 4
    WIN_RESULT = 5
    MOVE_REJECTED = 6
    DRAW_RESULT = 7
    TIMEOUT_RESULT = 8
    TIME_REMAINING = 9


@dataclass(frozen=True)
class Broadcast:
    op_code: OpCode
    payload: dict
    recipients: tuple[Player, ...] | None = None

    @property
    def private(self) -> bool:
        return self.recipients is not None

    def data(self) -> bytes:
        return encode_payload(self.payload)


def encode_payload(payload: dict) -> bytes:
    return json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")


class Dispatcher:
    """Base dispatcher. Subclasses deliver encoded broadcasts in ``send``."""

    def broadcast(
        self,
        op_code: OpCode,
        payload: dict,
        recipients: list[Player] | None = None,
    ) -> Broadcast:
        event = Broadcast(
            op_code=OpCode(op_code),
            payload=payload,
            recipients=tuple(recipients) if recipients is not None else None,
        )
        self.send(event)
        return event

    def send(self, event: Broadcast) -> None:
        raise NotImplementedError


class RecordingDispatcher(Dispatcher):
    """Keeps every broadcast in order. Used by the local host and tests."""

    def __init__(self) -> None:
        self.events: list[Broadcast] = []

    def send(self, event: Broadcast) -> None:
        self.events.append(event)

    def of_type(self, op_code: OpCode) -> list[Broadcast]:
        return [e for e in self.events if e.op_code == op_code]

    def clear(self) -> None:
        self.events.clear()


@dataclass(frozen=True)
class MatchMessage:
    """One inbound client message, queued by the host until the next tick."""

    sender: Player
    data: bytes
