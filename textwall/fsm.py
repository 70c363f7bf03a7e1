from __future__ import annotations

from enum import StrEnum

from statemachine import State, StateMachine


class GamePhase(StrEnum):
    awaiting_first_move = "awaiting_first_move"
    in_progress = "in_progress"
    ai_thinking = "ai_thinking"
    concluded = "concluded"


class TeleprompterPhase(StrEnum):
    scrolling = "scrolling"
    holding = "holding"
    showing_end_banner = "showing_end_banner"


class GameFSM(StateMachine):
    """Turn arbitration for one tic-tac-toe game.

    awaiting first move -> in progress <-> AI thinking -> concluded, and `new_game`
    back to awaiting first move from anywhere. The controller owns the board;
    this machine only guards which transitions are legal.
    """

    awaiting_first_move = State(
        GamePhase.awaiting_first_move.value,
        value=GamePhase.awaiting_first_move.value,
        initial=True,
    )
    in_progress = State(GamePhase.in_progress.value, value=GamePhase.in_progress.value)
    ai_thinking = State(GamePhase.ai_thinking.value, value=GamePhase.ai_thinking.value)
    concluded = State(GamePhase.concluded.value, value=GamePhase.concluded.value)

    user_moved = awaiting_first_move.to(ai_thinking) | in_progress.to(ai_thinking)
    ai_moved = awaiting_first_move.to(in_progress) | ai_thinking.to(in_progress)
    conclude = in_progress.to(concluded) | ai_thinking.to(concluded)
    new_game = (
        awaiting_first_move.to.itself()
        | in_progress.to(awaiting_first_move)
        | ai_thinking.to(awaiting_first_move)
        | concluded.to(awaiting_first_move)
    )

    @property
    def phase(self) -> GamePhase:
        return GamePhase(str(self.current_state.value))


class TeleprompterFSM(StateMachine):
    """scrolling -> holding at the end -> showing the end banner; `restart` from anywhere."""

    scrolling = State(TeleprompterPhase.scrolling.value, value=TeleprompterPhase.scrolling.value, initial=True)
    holding = State(TeleprompterPhase.holding.value, value=TeleprompterPhase.holding.value)
    showing_end_banner = State(
        TeleprompterPhase.showing_end_banner.value,
        value=TeleprompterPhase.showing_end_banner.value,
    )

    reached_end = scrolling.to(holding)
    hold_expired = holding.to(showing_end_banner)
    restart = scrolling.to.itself() | holding.to(scrolling) | showing_end_banner.to(scrolling)

    @property
    def phase(self) -> TeleprompterPhase:
        return TeleprompterPhase(str(self.current_state.value))
