from __future__ import annotations

import random
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, field_validator

from textwall.core.display import Defer, SessionQueue, Show, Step
from textwall.session_app import SessionApp
from textwall.teleprompter.controller import (
    DEFAULT_INTERVAL_MS,
    DEFAULT_LINE_WIDTH,
    DEFAULT_VISIBLE_LINES,
    DEFAULT_WORDS_PER_MINUTE,
    TeleprompterController,
)

SCROLL_TAG = "scroll"
SETTINGS_NOTICE = "Settings updated. Restarting teleprompter..."


@dataclass(frozen=True, slots=True)
class TeleprompterTimings:
    start_delay_ms: int = 1_000
    refresh_delay_ms: int = 1_500
    end_refresh_ms: int = 500


MIN_LINE_WIDTH = 10
MAX_LINE_WIDTH = 200
MIN_VISIBLE_LINES = 1
MAX_VISIBLE_LINES = 20


def _clamped_int(value: Any, *, default: int, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


class TeleprompterSettings(BaseModel):
    """User settings. One bad value falls back or clamps without rejecting the rest."""

    line_width: int = DEFAULT_LINE_WIDTH
    number_of_lines: int = DEFAULT_VISIBLE_LINES
    # Out-of-range speeds are clamped by the scroll engine.
    scroll_speed: int = DEFAULT_WORDS_PER_MINUTE
    custom_text: str = ""

    @field_validator("line_width", mode="before")
    @classmethod
    def _clamp_line_width(cls, v: object) -> int:
        return _clamped_int(v, default=DEFAULT_LINE_WIDTH, low=MIN_LINE_WIDTH, high=MAX_LINE_WIDTH)

    @field_validator("number_of_lines", mode="before")
    @classmethod
    def _clamp_number_of_lines(cls, v: object) -> int:
        return _clamped_int(v, default=DEFAULT_VISIBLE_LINES, low=MIN_VISIBLE_LINES, high=MAX_VISIBLE_LINES)


class TeleprompterApp(SessionApp[TeleprompterController, TeleprompterSettings]):
    settings_model = TeleprompterSettings
    subscriptions = ()
    display_duration_ms = 10_000

    def __init__(
        self,
        *,
        package_name: str = "com.augmentos.teleprompter",
        interval_ms: int = DEFAULT_INTERVAL_MS,
        timings: TeleprompterTimings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.package_name = package_name
        self.interval_ms = interval_ms
        self.timings = timings or TeleprompterTimings()
        self._clock = clock

    def create_controller(self, *, settings: TeleprompterSettings, rng: random.Random) -> TeleprompterController:
        return TeleprompterController(
            text=settings.custom_text,
            line_width=settings.line_width,
            visible_lines=settings.number_of_lines,
            words_per_minute=settings.scroll_speed,
            interval_ms=self.interval_ms,
            clock=self._clock,
        )

    def apply_settings(self, controller: TeleprompterController, settings: TeleprompterSettings) -> None:
        controller.apply_settings(
            text=settings.custom_text,
            line_width=settings.line_width,
            visible_lines=settings.number_of_lines,
            words_per_minute=settings.scroll_speed,
        )

    def on_connected(self, *, controller: TeleprompterController, queue: SessionQueue) -> None:
        queue.replace([self._start_after(controller, self.timings.start_delay_ms)])

    def on_refresh(self, *, controller: TeleprompterController, queue: SessionQueue) -> None:
        queue.replace([Show(SETTINGS_NOTICE), self._start_after(controller, self.timings.refresh_delay_ms)])

    def _start_after(self, controller: TeleprompterController, delay_ms: int) -> Step:
        return Defer(lambda: self._start(controller), delay_ms=delay_ms, tag=SCROLL_TAG)

    def _start(self, controller: TeleprompterController) -> Sequence[Step]:
        controller.reset_position()
        return [Show(controller.render()), self._next_tick(controller)]

    def _next_tick(self, controller: TeleprompterController) -> Step:
        return Defer(lambda: self._tick(controller), delay_ms=controller.interval_ms, tag=SCROLL_TAG)

    def _tick(self, controller: TeleprompterController) -> Sequence[Step]:
        controller.advance()
        text = controller.render()
        if controller.is_at_end():
            # Scrolling is over; keep the final screen (then the banner) alive.
            return [Show(text), self._end_tick(controller)]
        return [Show(text), self._next_tick(controller)]

    def _end_tick(self, controller: TeleprompterController) -> Step:
        return Defer(
            lambda: [Show(controller.render()), self._end_tick(controller)],
            delay_ms=self.timings.end_refresh_ms,
            tag=SCROLL_TAG,
        )
