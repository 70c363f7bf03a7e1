from __future__ import annotations

import os
import random
from collections.abc import Callable, Generator, Sequence
from pathlib import Path
from typing import Any

import pytest

from textwall.core.errors import TransportClosed


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs without overriding anything already exported."""

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists() and not os.environ.get("CI"):
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


class FakeTransport:
    """Records every payload; flip `open` to simulate a dropped connection."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.open = True

    @property
    def is_open(self) -> bool:
        return self.open

    async def send_json(self, payload: dict[str, Any]) -> None:
        if not self.open:
            raise TransportClosed("fake transport closed")
        self.sent.append(payload)

    def of_type(self, message_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent if m["type"] == message_type]

    def displayed(self) -> list[str]:
        return [m["layout"]["text"] for m in self.of_type("display_event")]


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedRandom(random.Random):
    """`choice` always takes the first (or last) element; `random()` is fixed.

    With `pick_first=True` the user draws X and Easy AI plays the lowest free cell.
    """

    def __init__(self, *, pick_first: bool = True, roll: float = 0.0) -> None:
        super().__init__(0)
        self.pick_first = pick_first
        self.roll = roll

    def choice(self, seq: Sequence[Any]) -> Any:
        return seq[0] if self.pick_first else seq[-1]

    def random(self) -> float:
        return self.roll


@pytest.fixture()
def transport_factory() -> Callable[[], FakeTransport]:
    return FakeTransport


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def scripted_rng() -> Callable[..., ScriptedRandom]:
    return ScriptedRandom


@pytest.fixture()
def recorded() -> Generator[tuple[list[str], Callable[[str], Any]], None, None]:
    """A display sender that appends every rendered text to a list."""

    texts: list[str] = []

    async def send(text: str) -> None:
        texts.append(text)

    yield texts, send
