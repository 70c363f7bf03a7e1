from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from enum import StrEnum

from textwall.core.errors import GameOver, InvalidMove, NotYourTurn
from textwall.fsm import GameFSM, GamePhase
from textwall.tictactoe.board import (
    BOARD_SIZE,
    UNDECIDED,
    Board,
    Mark,
    Outcome,
    apply_move,
    empty_board,
    evaluate,
    render_board,
)
from textwall.tictactoe.search import Difficulty, choose_move

logger = logging.getLogger(__name__)

RESET_PHRASES = ("new game", "restart")

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_MOVE_DIGIT = re.compile(r"[1-9]")


class CommandKind(StrEnum):
    reset = "reset"
    move = "move"


@dataclass(frozen=True, slots=True)
class Command:
    kind: CommandKind
    # 1-based board position for moves.
    position: int | None = None


def parse_command(text: str) -> Command | None:
    """Map a final transcript to a game command, or None to ignore it.

    Reset wins over a move when both appear ("restart 5" restarts).
    """

    normalized = " ".join(_NON_ALNUM.sub("", text.lower()).split())
    padded = f" {normalized} "
    if any(f" {phrase} " in padded for phrase in RESET_PHRASES):
        return Command(kind=CommandKind.reset)

    m = _MOVE_DIGIT.search(text)
    if m:
        return Command(kind=CommandKind.move, position=int(m.group()))
    return None


@dataclass(slots=True)
class GameState:
    board: Board
    current_turn: Mark
    user_mark: Mark
    ai_mark: Mark
    difficulty: Difficulty
    outcome: Outcome = UNDECIDED

    @property
    def concluded(self) -> bool:
        return self.outcome.decided


class GameController:
    """One user's tic-tac-toe game: turn sequencing and AI invocation.

    Display timing is not handled here; callers turn the results into display
    steps. All randomness comes from `rng`.
    """

    def __init__(self, *, difficulty: Difficulty = Difficulty.easy, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self.fsm = GameFSM()
        self._start(difficulty)

    def _fresh_state(self, difficulty: Difficulty) -> GameState:
        user_mark = self._rng.choice((Mark.X, Mark.O))
        return GameState(
            board=empty_board(),
            current_turn=Mark.X,
            user_mark=user_mark,
            ai_mark=user_mark.other,
            difficulty=difficulty,
        )

    @property
    def phase(self) -> GamePhase:
        return self.fsm.phase

    @property
    def awaiting_ai(self) -> bool:
        return self.phase == GamePhase.ai_thinking

    @property
    def concluded(self) -> bool:
        return self.phase == GamePhase.concluded

    @property
    def users_turn(self) -> bool:
        return not self.state.concluded and self.state.current_turn is self.state.user_mark

    def set_difficulty(self, difficulty: Difficulty) -> None:
        """Takes effect on the next AI turn."""

        self.state.difficulty = difficulty

    def new_game(self) -> None:
        """Clear the board and re-draw marks; the AI opens if it drew X."""

        self._start(self.state.difficulty)

    def _start(self, difficulty: Difficulty) -> None:
        self.fsm.new_game()
        self.state = self._fresh_state(difficulty)
        logger.info("New game: user=%s ai=%s difficulty=%s", self.state.user_mark, self.state.ai_mark, self.state.difficulty)
        if self.state.ai_mark is Mark.X:
            self._play_ai_move()

    def submit_user_move(self, position: int) -> None:
        """Apply the user's move at a 1-based `position`.

        Raises GameOver, NotYourTurn or InvalidMove without touching the board.
        """

        if self.state.concluded:
            raise GameOver("Game is over")
        if not self.users_turn:
            raise NotYourTurn("Not your turn")
        index = position - 1
        self.state.board = apply_move(self.state.board, index, self.state.user_mark)
        self._after_move(moved_by_ai=False)

    def play_ai_turn(self) -> bool:
        """Run the pending AI move. Returns False if there is none (stale timer)."""

        if self.phase != GamePhase.ai_thinking or self.state.current_turn is not self.state.ai_mark:
            logger.debug("Skipping stale AI turn in phase %s", self.phase)
            return False
        self._play_ai_move()
        return True

    def _play_ai_move(self) -> None:
        s = self.state
        index = choose_move(s.board, ai_mark=s.ai_mark, user_mark=s.user_mark, difficulty=s.difficulty, rng=self._rng)
        s.board = apply_move(s.board, index, s.ai_mark)
        logger.debug("AI (%s, %s) played position %d", s.ai_mark, s.difficulty, index + 1)
        self._after_move(moved_by_ai=True)

    def _after_move(self, *, moved_by_ai: bool) -> None:
        s = self.state
        s.outcome = evaluate(s.board)
        if s.outcome.decided:
            self.fsm.conclude()
            logger.info("Game concluded: %s", self.conclusion_message())
            return
        s.current_turn = s.current_turn.other
        if moved_by_ai:
            self.fsm.ai_moved()
        else:
            self.fsm.user_moved()

    def describe_rejection(self, error: ValueError) -> str:
        """User-facing advisory for a rejected move."""

        if isinstance(error, GameOver):
            return "Game over! Say 'new game' to play again."
        if isinstance(error, NotYourTurn):
            return "Please wait, it's not your turn."
        if isinstance(error, InvalidMove):
            if not 0 <= error.index < BOARD_SIZE:
                return "Invalid move. Say a number from 1 to 9."
            if self.state.board[error.index] is self.state.ai_mark:
                return f"Position {error.index + 1} is already taken by the AI!"
            return f"Invalid move. Position {error.index + 1} is already taken."
        return "Invalid move."

    def conclusion_message(self) -> str:
        winner = self.state.outcome.winner
        if winner is self.state.user_mark:
            result = "You win!"
        elif winner is self.state.ai_mark:
            result = "AI wins!"
        elif self.state.outcome.draw:
            result = "It's a draw!"
        else:
            return ""
        return f"{result}\nSay 'new game' to play again."

    def status_line(self) -> str:
        if self.state.concluded:
            return self.conclusion_message().splitlines()[0]
        if self.users_turn:
            return "Your turn. Say a number 1-9."
        return "AI is thinking..."

    def render(self) -> str:
        s = self.state
        header = f"You: {s.user_mark} | AI: {s.ai_mark} | {s.difficulty}"
        return f"{header}\n{render_board(s.board)}\n{self.status_line()}"
