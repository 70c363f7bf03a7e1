from __future__ import annotations

import logging
import time
from collections.abc import Callable

from textwall.fsm import TeleprompterFSM, TeleprompterPhase
from textwall.teleprompter.scroll import ScrollEngine

logger = logging.getLogger(__name__)

DEFAULT_LINE_WIDTH = 38
DEFAULT_VISIBLE_LINES = 4
DEFAULT_WORDS_PER_MINUTE = 120
DEFAULT_INTERVAL_MS = 500

# How long the last screen stays up before the end banner replaces it.
END_HOLD_SECONDS = 10.0

END_BANNER = "*** END OF TEXT ***"
NO_TEXT = "No text available"

DEFAULT_TEXT = (
    "Welcome to the Teleprompter. This is a default text that will scroll at your set speed. "
    "You can replace this with your own content through the settings. "
    "The teleprompter will automatically scroll text at a comfortable reading pace. "
    "You can adjust the scroll speed (in words per minute), line width, and number of lines "
    "through the settings menu. As you read this text, it will continue to scroll upward, "
    "allowing you to deliver your presentation smoothly and professionally. "
    "You can also use the teleprompter to read your own text. Just enter your text in the "
    "settings and the teleprompter will display it for you to read. When you reach the end "
    'of the text, the teleprompter will show "END OF TEXT" until it is restarted.'
)


def format_elapsed(seconds: float) -> str:
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


class TeleprompterController:
    """Scroll state for one user.

    Shared by every session the user has open; owned by the session registry.
    `clock` must be monotonic seconds (injectable for tests).
    """

    def __init__(
        self,
        *,
        text: str = "",
        line_width: int = DEFAULT_LINE_WIDTH,
        visible_lines: int = DEFAULT_VISIBLE_LINES,
        words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self.engine = ScrollEngine(
            text=self._text_or_default(text),
            line_width=line_width,
            visible_lines=visible_lines,
            words_per_minute=words_per_minute,
            interval_ms=interval_ms,
        )
        self.fsm = TeleprompterFSM()
        self._started_at = clock()
        logger.debug(
            "Teleprompter ready: %d WPM, %.4f words per %dms interval",
            self.engine.words_per_minute,
            self.engine.words_per_interval,
            self.engine.interval_ms,
        )

    @staticmethod
    def _text_or_default(text: str | None) -> str:
        return text.strip() if text and text.strip() else DEFAULT_TEXT

    @property
    def phase(self) -> TeleprompterPhase:
        return self.fsm.phase

    @property
    def interval_ms(self) -> int:
        return self.engine.interval_ms

    @property
    def position(self) -> int:
        return self.engine.cursor.position

    @property
    def showing_end_banner(self) -> bool:
        return self.phase == TeleprompterPhase.showing_end_banner

    def advance(self) -> None:
        if self.phase == TeleprompterPhase.scrolling:
            self.engine.advance()

    def is_at_end(self) -> bool:
        """True once the last line is at the bottom; records when that first happened."""

        at_end = self.engine.at_end
        if at_end and self.engine.cursor.end_reached_at is None:
            self.engine.cursor.end_reached_at = self._clock()
            self.fsm.reached_end()
            logger.info("Reached end of text, holding for %.0f seconds", END_HOLD_SECONDS)
        return at_end

    def elapsed(self) -> str:
        return format_elapsed(self._clock() - self._started_at)

    def progress_header(self) -> str:
        return f"[{self.engine.progress_percent()}%] | {self.elapsed()}"

    def render(self) -> str:
        if not self.engine.document.lines:
            return NO_TEXT

        header = self.progress_header()
        if self.is_at_end() and self.phase == TeleprompterPhase.holding:
            end_reached_at = self.engine.cursor.end_reached_at
            if end_reached_at is not None and self._clock() - end_reached_at >= END_HOLD_SECONDS:
                self.fsm.hold_expired()

        if self.showing_end_banner:
            return f"{header}\n\n{END_BANNER}"
        return header + "\n" + "\n".join(self.engine.visible_window())

    def reset_position(self) -> None:
        self.engine.cursor.reset()
        self.fsm.restart()
        self._started_at = self._clock()

    def apply_settings(
        self,
        *,
        text: str | None = None,
        line_width: int | None = None,
        visible_lines: int | None = None,
        words_per_minute: int | None = None,
        interval_ms: int | None = None,
    ) -> None:
        """Reconfigure in place. Any layout change re-wraps the text and rewinds."""

        if words_per_minute is not None:
            self.engine.set_words_per_minute(words_per_minute)
        if interval_ms is not None:
            self.engine.set_interval_ms(interval_ms)
        if text is not None or line_width is not None or visible_lines is not None:
            self.engine.reconfigure(
                text=None if text is None else self._text_or_default(text),
                line_width=line_width,
                visible_lines=visible_lines,
            )
            self.fsm.restart()
        logger.info(
            "Teleprompter settings: width=%d lines=%d speed=%d WPM",
            self.engine.line_width,
            self.engine.visible_lines,
            self.engine.words_per_minute,
        )
