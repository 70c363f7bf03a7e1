from __future__ import annotations

import random
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from textwall.api.models import SettingEntry
from textwall.core.display import SessionQueue
from textwall.core.errors import SettingsFetchFailure

ControllerT = TypeVar("ControllerT")
SettingsT = TypeVar("SettingsT", bound=BaseModel)


class SessionApp(ABC, Generic[ControllerT, SettingsT]):
    """Per-app behavior plugged into the session registry.

    The registry owns sessions, controllers and queues; an app decides how a
    controller is built from settings and which display steps each event
    produces. Hooks run on the event loop and must not block.
    """

    package_name: str
    settings_model: type[SettingsT]
    subscriptions: tuple[str, ...] = ()
    # How long the transport keeps a frame up if nothing refreshes it.
    display_duration_ms: int = 10_000

    def default_settings(self) -> SettingsT:
        return self.settings_model()

    def parse_settings(self, entries: Sequence[SettingEntry]) -> SettingsT:
        """Build settings from the remote key/value list; unknown keys are ignored."""

        fields = self.settings_model.model_fields
        raw = {e.key: e.value for e in entries if e.key in fields and e.value is not None}
        try:
            return self.settings_model.model_validate(raw)
        except ValidationError as e:
            raise SettingsFetchFailure(f"Invalid settings payload for {self.package_name}: {e}") from e

    @abstractmethod
    def create_controller(self, *, settings: SettingsT, rng: random.Random) -> ControllerT:
        raise NotImplementedError

    @abstractmethod
    def apply_settings(self, controller: ControllerT, settings: SettingsT) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_connected(self, *, controller: ControllerT, queue: SessionQueue) -> None:
        """First render after the transport acknowledged the connection."""

        raise NotImplementedError

    def on_transcript(self, *, controller: ControllerT, queue: SessionQueue, text: str) -> None:
        """Handle a final, lower-cased, trimmed transcript. Default: ignore."""

        return None

    @abstractmethod
    def on_refresh(self, *, controller: ControllerT, queue: SessionQueue) -> None:
        """Re-render a live session after its user's settings changed."""

        raise NotImplementedError
