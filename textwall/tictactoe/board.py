"""Tic-tac-toe board model: immutable 9-cell boards, move legality and outcome rules.

Cells are indexed 0..8, row-major. Users speak 1-based positions; the
conversion happens in the controller, never here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from textwall.core.errors import InvalidMove


class Mark(StrEnum):
    X = "X"
    O = "O"

    @property
    def other(self) -> "Mark":
        return Mark.O if self is Mark.X else Mark.X


Cell = Mark | None
Board = tuple[Cell, ...]

BOARD_SIZE = 9

# Rows, then columns, then diagonals.
WIN_LINES: tuple[tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of evaluating a board.

    `winner` is set only for a win; `draw` only for a full board with no winner.
    """

    winner: Mark | None = None
    draw: bool = False

    @property
    def decided(self) -> bool:
        return self.winner is not None or self.draw


UNDECIDED = Outcome()
DRAW = Outcome(draw=True)


def empty_board() -> Board:
    return (None,) * BOARD_SIZE


def empty_cells(board: Board) -> list[int]:
    return [i for i, cell in enumerate(board) if cell is None]


def apply_move(board: Board, index: int, mark: Mark) -> Board:
    if not 0 <= index < BOARD_SIZE:
        raise InvalidMove(index, "out of range")
    if board[index] is not None:
        raise InvalidMove(index, f"occupied by {board[index]}")
    cells = list(board)
    cells[index] = mark
    return tuple(cells)


def evaluate(board: Board) -> Outcome:
    for a, b, c in WIN_LINES:
        mark = board[a]
        if mark is not None and mark == board[b] == board[c]:
            return Outcome(winner=mark)
    if all(cell is not None for cell in board):
        return DRAW
    return UNDECIDED


def render_board(board: Board) -> str:
    """Plain-text grid; empty cells show the number the user would say."""

    rows: list[str] = []
    for r in range(3):
        cells = [board[r * 3 + c] or str(r * 3 + c + 1) for c in range(3)]
        rows.append(" " + " | ".join(cells))
    return "\n---+---+---\n".join(rows)


def board_from_string(layout: str) -> Board:
    """Build a board from a 9-char string like `"XO.X....."` (`.` or space is empty)."""

    if len(layout) != BOARD_SIZE:
        raise ValueError(f"Board layout must have {BOARD_SIZE} cells, got {len(layout)}")
    cells: list[Cell] = []
    for ch in layout.upper():
        if ch in (".", " ", "-"):
            cells.append(None)
        else:
            cells.append(Mark(ch))
    return tuple(cells)
