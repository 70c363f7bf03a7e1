from __future__ import annotations


class InvalidMove(ValueError):
    """A move targets a cell outside the board or one that is already taken."""

    def __init__(self, index: int, reason: str) -> None:
        super().__init__(f"Invalid move at index {index}: {reason}")
        self.index = index
        self.reason = reason


class NotYourTurn(ValueError):
    pass


class GameOver(ValueError):
    """A move arrived after the game was already won or drawn."""


class SettingsFetchFailure(RuntimeError):
    """The remote settings service was unreachable or returned a bad payload."""


class TransportClosed(RuntimeError):
    """A display command was sent on a session whose transport is gone."""
