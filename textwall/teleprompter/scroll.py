"""Scroll positioning: turns a words-per-minute rate into whole-line advances.

A fractional accumulator carries partial lines between ticks so slow speeds
still move the text, one line at a time, at the right average rate.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from textwall.teleprompter.wrapping import estimate_words_per_line, wrap_text

logger = logging.getLogger(__name__)

MIN_WORDS_PER_MINUTE = 1
MAX_WORDS_PER_MINUTE = 500
MIN_INTERVAL_MS = 100
MAX_INTERVAL_MS = 2000

# Used when the text yields no usable estimate.
FALLBACK_WORDS_PER_LINE = 5.0


def clamp_words_per_minute(wpm: int) -> int:
    return max(MIN_WORDS_PER_MINUTE, min(MAX_WORDS_PER_MINUTE, wpm))


def clamp_interval_ms(interval_ms: int) -> int:
    return max(MIN_INTERVAL_MS, min(MAX_INTERVAL_MS, interval_ms))


@dataclass(frozen=True, slots=True)
class ScrollDocument:
    lines: tuple[str, ...]
    average_words_per_line: float

    @classmethod
    def from_text(cls, text: str, line_width: int) -> "ScrollDocument":
        lines = tuple(wrap_text(text, line_width))
        avg = estimate_words_per_line(text, line_width)
        if avg <= 0:
            avg = FALLBACK_WORDS_PER_LINE
        return cls(lines=lines, average_words_per_line=avg)

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    def window(self, position: int, visible_lines: int) -> list[str]:
        """Lines visible from `position`, padded with blanks to `visible_lines`."""

        visible = list(self.lines[position : position + visible_lines])
        visible.extend([""] * (visible_lines - len(visible)))
        return visible


@dataclass(slots=True)
class ScrollCursor:
    position: int = 0
    accumulator: float = 0.0
    end_reached_at: float | None = None

    def reset(self) -> None:
        self.position = 0
        self.accumulator = 0.0
        self.end_reached_at = None


class ScrollEngine:
    def __init__(
        self,
        *,
        text: str,
        line_width: int,
        visible_lines: int,
        words_per_minute: int,
        interval_ms: int,
    ) -> None:
        if visible_lines < 1:
            raise ValueError("visible_lines must be at least 1")
        self.text = text
        self.line_width = line_width
        self.visible_lines = visible_lines
        self.words_per_minute = clamp_words_per_minute(words_per_minute)
        self.interval_ms = clamp_interval_ms(interval_ms)
        self.cursor = ScrollCursor()
        self.document = ScrollDocument.from_text(text, line_width)

    @property
    def words_per_interval(self) -> float:
        return (self.words_per_minute / 60) * (self.interval_ms / 1000)

    @property
    def lines_per_interval(self) -> float:
        return self.words_per_interval / max(1.0, self.document.average_words_per_line)

    @property
    def max_position(self) -> int:
        return max(0, self.document.total_lines - self.visible_lines)

    @property
    def at_end(self) -> bool:
        return self.cursor.position >= self.max_position

    def advance(self) -> int:
        """One tick. Returns how many whole lines the cursor moved."""

        if not self.document.lines:
            return 0

        cursor = self.cursor
        cursor.accumulator += self.lines_per_interval
        moved = 0
        if cursor.accumulator >= 1:
            whole = math.floor(cursor.accumulator)
            cursor.accumulator -= whole
            before = cursor.position
            cursor.position = min(cursor.position + whole, self.max_position)
            moved = cursor.position - before
        return moved

    def progress_percent(self) -> int:
        span = self.document.total_lines - self.visible_lines
        if span <= 0:
            return 100
        return min(100, math.floor(self.cursor.position / span * 100 + 0.5))

    def visible_window(self) -> list[str]:
        return self.document.window(self.cursor.position, self.visible_lines)

    def reconfigure(
        self,
        *,
        text: str | None = None,
        line_width: int | None = None,
        visible_lines: int | None = None,
    ) -> None:
        """Re-wrap the document and reset the cursor."""

        if text is not None:
            self.text = text
        if line_width is not None:
            self.line_width = line_width
        if visible_lines is not None:
            if visible_lines < 1:
                raise ValueError("visible_lines must be at least 1")
            self.visible_lines = visible_lines
        self.document = ScrollDocument.from_text(self.text, self.line_width)
        self.cursor.reset()
        logger.debug(
            "Reprocessed text: %d lines, %.2f words/line, %.4f lines/interval",
            self.document.total_lines,
            self.document.average_words_per_line,
            self.lines_per_interval,
        )

    def set_words_per_minute(self, wpm: int) -> None:
        self.words_per_minute = clamp_words_per_minute(wpm)

    def set_interval_ms(self, interval_ms: int) -> None:
        self.interval_ms = clamp_interval_ms(interval_ms)
