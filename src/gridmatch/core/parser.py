"""MoveParser — decode and validate inbound move payloads.

Payloads arrive as raw bytes from clients that may be buggy or hostile.
They are sanitized, parsed as JSON and validated against the move schema.
Decoding never raises: failures come back as a DecodeResult with
``success=False`` and the engine turns them into a private rejection.

The schema checks shape only ({"row": int, "col": int}). Range is left to
the board rules so an off-grid move is reported as out of bounds, not as
malformed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import jsonschema

from gridmatch.core.sanitizer import sanitize_text
from gridmatch.game.board import to_cell

MOVE_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "game" / "schema.json"


def load_move_schema(path: Path = MOVE_SCHEMA_PATH) -> dict:
    with open(path) as f:
        return json.load(f)


@dataclass(frozen=True)
class Move:
    row: int
    col: int

    @property
    def cell(self) -> int:
        """Board index, or -1 when off the grid."""
        return to_cell(self.row, self.col)


@dataclass(frozen=True)
class DecodeResult:
    """Result of decoding one inbound payload."""

    success: bool
    move: Move | None
    error: str | None


class MoveParser:
    """Decode ``{"row": int, "col": int}`` payloads."""

    def __init__(self, schema: dict | None = None) -> None:
        self._schema = schema if schema is not None else load_move_schema()

    @property
    def schema(self) -> dict:
        return self._schema

    def parse(self, data: bytes | str) -> DecodeResult:
        if isinstance(data, (bytes, bytearray)):
            try:
                text = bytes(data).decode("utf-8")
            except UnicodeDecodeError as e:
                return _failure(f"Payload is not UTF-8: {e.reason}")
        elif isinstance(data, str):
            text = data
        else:
            return _failure(f"Unsupported payload type: {type(data).__name__}")

        text = sanitize_text(text).strip()
        if not text:
            return _failure("Empty payload")

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            return _failure(f"JSON parse error: {e}")

        if not isinstance(parsed, dict):
            return _failure("JSON value is not an object")

        try:
            jsonschema.validate(parsed, self._schema)
        except jsonschema.ValidationError as e:
            return _failure(f"Schema validation: {e.message}")

        # Draft 6+ accepts 1.0 as an integer; indices must be real ints.
        move = Move(row=int(parsed["row"]), col=int(parsed["col"]))
        return DecodeResult(success=True, move=move, error=None)


def _failure(error: str) -> DecodeResult:
    return DecodeResult(success=False, move=None, error=error)
