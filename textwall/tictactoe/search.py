from __future__ import annotations

import random
from enum import StrEnum
from functools import lru_cache

from textwall.tictactoe.board import Board, Mark, apply_move, empty_cells, evaluate

WIN_SCORE = 10

# Chance that Medium plays the optimal move instead of a random one.
MEDIUM_OPTIMAL_PROBABILITY = 0.7


class Difficulty(StrEnum):
    easy = "Easy"
    medium = "Medium"
    impossible = "Impossible"

    @classmethod
    def parse(cls, value: str | None, *, default: "Difficulty | None" = None) -> "Difficulty":
        """Case-insensitive lookup; falls back to `default` (Easy) for unknown values."""

        if value:
            wanted = value.strip().casefold()
            for member in cls:
                if member.value.casefold() == wanted:
                    return member
        return default or cls.easy


@lru_cache(maxsize=None)
def _minimax(board: Board, ai_mark: Mark, maximizing: bool, depth: int) -> int:
    outcome = evaluate(board)
    if outcome.winner is ai_mark:
        return WIN_SCORE - depth
    if outcome.winner is not None:
        return depth - WIN_SCORE
    if outcome.draw:
        return 0

    mark = ai_mark if maximizing else ai_mark.other
    scores = (_minimax(apply_move(board, idx, mark), ai_mark, not maximizing, depth + 1) for idx in empty_cells(board))
    return max(scores) if maximizing else min(scores)


def best_move(board: Board, ai_mark: Mark, user_mark: Mark) -> int:
    """Optimal cell for `ai_mark` by exhaustive minimax.

    Faster wins and slower losses score higher. Ties go to the lowest index, so
    the result is stable for a given board.
    """

    if ai_mark is user_mark:
        raise ValueError("AI and user must hold different marks")
    moves = empty_cells(board)
    if not moves:
        raise ValueError("No moves left on a full board")
    if evaluate(board).decided:
        raise ValueError("Game is already decided")

    best_idx = moves[0]
    best_score = -WIN_SCORE - 1
    for idx in moves:
        score = _minimax(apply_move(board, idx, ai_mark), ai_mark, False, 1)
        if score > best_score:
            best_score = score
            best_idx = idx
    return best_idx


def choose_move(
    board: Board,
    *,
    ai_mark: Mark,
    user_mark: Mark,
    difficulty: Difficulty,
    rng: random.Random,
) -> int:
    """Pick the AI's move for the given difficulty.

    - Easy: uniform over empty cells.
    - Medium: optimal with probability 0.7, otherwise uniform.
    - Impossible: always optimal.
    """

    moves = empty_cells(board)
    if not moves:
        raise ValueError("No moves left on a full board")

    if difficulty == Difficulty.impossible:
        return best_move(board, ai_mark, user_mark)
    if difficulty == Difficulty.medium and rng.random() < MEDIUM_OPTIMAL_PROBABILITY:
        return best_move(board, ai_mark, user_mark)
    return rng.choice(moves)
