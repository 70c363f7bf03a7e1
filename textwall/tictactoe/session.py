from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import BaseModel, field_validator

from textwall.core.display import Defer, SessionQueue, Show, Step
from textwall.core.errors import GameOver, InvalidMove, NotYourTurn
from textwall.session_app import SessionApp
from textwall.tictactoe.controller import CommandKind, GameController, parse_command
from textwall.tictactoe.search import Difficulty

logger = logging.getLogger(__name__)

ADVISORY_TAG = "advisory"
AI_MOVE_TAG = "ai_move"
CONCLUSION_TAG = "conclusion"


@dataclass(frozen=True, slots=True)
class GameTimings:
    ai_move_ms: int = 1_000
    conclusion_ms: int = 2_000
    advisory_ms: int = 2_000
    settings_notice_ms: int = 1_500


class GameSettings(BaseModel):
    difficulty: Difficulty = Difficulty.easy

    @field_validator("difficulty", mode="before")
    @classmethod
    def _parse_difficulty(cls, v: object) -> Difficulty:
        return Difficulty.parse(str(v))


class TicTacToeApp(SessionApp[GameController, GameSettings]):
    settings_model = GameSettings
    subscriptions = ("transcription",)
    display_duration_ms = 60_000

    def __init__(self, *, package_name: str = "com.augmentos.tictactoe", timings: GameTimings | None = None) -> None:
        self.package_name = package_name
        self.timings = timings or GameTimings()

    def create_controller(self, *, settings: GameSettings, rng: random.Random) -> GameController:
        return GameController(difficulty=settings.difficulty, rng=rng)

    def apply_settings(self, controller: GameController, settings: GameSettings) -> None:
        controller.set_difficulty(settings.difficulty)

    def on_connected(self, *, controller: GameController, queue: SessionQueue) -> None:
        queue.replace([Show(controller.render())])

    def on_transcript(self, *, controller: GameController, queue: SessionQueue, text: str) -> None:
        command = parse_command(text)
        if command is None:
            logger.debug("[Session %s]: ignoring transcript %r", queue.session_id, text)
            return

        if command.kind == CommandKind.reset:
            controller.new_game()
            queue.replace([Show(controller.render())])
            return

        if command.position is None:
            return
        try:
            controller.submit_user_move(command.position)
        except (GameOver, NotYourTurn, InvalidMove) as e:
            logger.debug("[Session %s]: rejected move %d: %s", queue.session_id, command.position, e)
            if controller.awaiting_ai:
                # Show the notice now; the AI move runs after it.
                queue.supersede(
                    AI_MOVE_TAG,
                    [Show(controller.describe_rejection(e), tag=ADVISORY_TAG), *self._after_move_steps(controller)],
                )
            else:
                self._advise(controller, queue, controller.describe_rejection(e))
            return

        # A pending advisory is stale once the move is accepted.
        queue.supersede(ADVISORY_TAG, [Show(controller.render()), *self._after_move_steps(controller)])

    def on_refresh(self, *, controller: GameController, queue: SessionQueue) -> None:
        notice = f"Settings updated. Difficulty: {controller.state.difficulty}"
        self._advise(controller, queue, notice, hold_ms=self.timings.settings_notice_ms)

    def _advise(self, controller: GameController, queue: SessionQueue, message: str, *, hold_ms: int | None = None) -> None:
        # Advisories are informational: the board is always re-rendered after them.
        delay = self.timings.advisory_ms if hold_ms is None else hold_ms
        queue.supersede(
            ADVISORY_TAG,
            [
                Show(message, tag=ADVISORY_TAG),
                Defer(lambda: [Show(controller.render())], delay_ms=delay, tag=ADVISORY_TAG),
            ],
        )

    def _after_move_steps(self, controller: GameController) -> list[Step]:
        if controller.awaiting_ai:
            return [Defer(lambda: self._ai_turn(controller), delay_ms=self.timings.ai_move_ms, tag=AI_MOVE_TAG)]
        if controller.concluded:
            return [
                Defer(
                    lambda: [Show(controller.conclusion_message())],
                    delay_ms=self.timings.conclusion_ms,
                    tag=CONCLUSION_TAG,
                )
            ]
        return []

    def _ai_turn(self, controller: GameController) -> Sequence[Step]:
        if not controller.play_ai_turn():
            # Another session already ran this turn; put the board back up.
            return [Show(controller.render())]
        return [Show(controller.render()), *self._after_move_steps(controller)]
