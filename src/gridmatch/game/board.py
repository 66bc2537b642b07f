"""Tic-tac-toe board logic — flat 9-cell representation.

Cells are indexed ``row * 3 + col`` with row 0 on top. Boards are
immutable tuples so every helper here is a pure function.

Cell encoding:
  ""  — empty
  "X" — first symbol
  "O" — second symbol
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "Board",
    "RejectReason",
    "Symbol",
    "ValidationResult",
    "WIN_LINES",
    "apply_move",
    "check_win",
    "is_draw",
    "is_legal_move",
    "new_board",
    "render_board",
    "to_cell",
]

EMPTY = ""
SIZE = 3
CELLS = SIZE * SIZE

Board = tuple[str, ...]

# Eight lines to check for a win: 3 rows, 3 cols, 2 diagonals
WIN_LINES: tuple[tuple[int, int, int], ...] = (
    # Rows
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    # Columns
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    # Diagonals
    (0, 4, 8),
    (2, 4, 6),
)


class Symbol(str, Enum):
    FIRST = "X"
    SECOND = "O"


class RejectReason(Enum):
    """Why an inbound move was refused. The value is the wire message."""

    MALFORMED_MESSAGE = "Invalid action data"
    OUT_OF_BOUNDS = "Out of bounds move"
    CELL_OCCUPIED = "Cell already occupied"
    NOT_YOUR_TURN = "Not your turn"
    MATCH_ENDED = "Match has ended"

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class ValidationResult:
    """Result of checking a move against the board."""

    legal: bool
    reason: RejectReason | None = None


_LEGAL = ValidationResult(legal=True)


def new_board() -> Board:
    """Return an empty board."""
    return (EMPTY,) * CELLS


def to_cell(row: int, col: int) -> int:
    """Map (row, col) to a cell index, or -1 if either is off the grid."""
    if not (0 <= row < SIZE and 0 <= col < SIZE):
        return -1
    return row * SIZE + col


def is_legal_move(board: Board, cell: int) -> ValidationResult:
    if not 0 <= cell < CELLS:
        return ValidationResult(legal=False, reason=RejectReason.OUT_OF_BOUNDS)
    if board[cell] != EMPTY:
        return ValidationResult(legal=False, reason=RejectReason.CELL_OCCUPIED)
    return _LEGAL


def apply_move(board: Board, cell: int, symbol: str) -> Board:
    """Return a new board with ``symbol`` at ``cell``. Caller validates."""
    cells = list(board)
    cells[cell] = Symbol(symbol).value
    return tuple(cells)


def check_win(board: Board, symbol: str) -> bool:
    """True if any of the 8 lines is filled with ``symbol``."""
    mark = Symbol(symbol).value
    return any(all(board[i] == mark for i in line) for line in WIN_LINES)


def is_draw(board: Board) -> bool:
    """True when the board is full. Check for a win first."""
    return all(cell != EMPTY for cell in board)


def render_board(board: Board) -> str:
    """Render ASCII board with labeled axes."""
    lines = ["     0   1   2"]
    for r in range(SIZE):
        cells = " | ".join(
            f" {board[r * SIZE + c] or '.'}" for c in range(SIZE)
        )
        lines.append(f"{r}   {cells}")
        if r < SIZE - 1:
            lines.append("    ---+---+---")
    return "\n".join(lines)
