from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass

from textwall.core.errors import TransportClosed

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Show:
    """Render `text` on the session's display, then hold for `hold_ms`."""

    text: str
    hold_ms: int = 0
    tag: str | None = None


@dataclass(frozen=True, slots=True)
class Defer:
    """Wait `delay_ms`, then run `action`.

    The steps returned by `action` run next, ahead of anything already pending.
    Actions must not touch the queue themselves; they only return steps.
    """

    action: Callable[[], Sequence["Step"]]
    delay_ms: int = 0
    tag: str | None = None


Step = Show | Defer

Sender = Callable[[str], Awaitable[None]]


class SessionQueue:
    """Ordered display choreography for one session.

    Contract:
      - a single asyncio task drives the steps strictly in order;
      - `replace()` cancels everything (pending and in-flight) before pushing,
        so there is never more than one live timer per session;
      - `supersede(tag, ...)` only drops steps carrying `tag`.
    """

    def __init__(self, *, session_id: str, send: Sender) -> None:
        self.session_id = session_id
        self._send = send
        self._pending: deque[Step] = deque()
        self._current: Step | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> tuple[Step, ...]:
        return tuple(self._pending)

    @property
    def current(self) -> Step | None:
        return self._current

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def push(self, steps: Iterable[Step]) -> None:
        self._pending.extend(steps)
        self._ensure_running()

    def replace(self, steps: Iterable[Step]) -> None:
        self.cancel()
        self.push(steps)

    def supersede(self, tag: str, steps: Iterable[Step]) -> None:
        self._pending = deque(s for s in self._pending if s.tag != tag)
        if self._current is not None and self._current.tag == tag:
            # The in-flight step is stale; restart the driver on what is left.
            self._stop_driver()
        self.push(steps)

    def cancel(self) -> None:
        self._pending.clear()
        self._stop_driver()

    async def drain(self) -> None:
        """Wait until every pending step has run (test helper)."""

        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    def _stop_driver(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._current = None

    def _ensure_running(self) -> None:
        if self._pending and not self.running:
            self._task = asyncio.create_task(self._drive(), name=f"display:{self.session_id}")

    async def _drive(self) -> None:
        try:
            while self._pending:
                step = self._pending.popleft()
                self._current = step
                if isinstance(step, Show):
                    await self._send(step.text)
                    if step.hold_ms > 0:
                        await asyncio.sleep(step.hold_ms / 1000)
                else:
                    if step.delay_ms > 0:
                        await asyncio.sleep(step.delay_ms / 1000)
                    self._pending.extendleft(reversed(list(step.action())))
                self._current = None
        except TransportClosed:
            logger.info("[Session %s]: transport closed, dropping %d pending steps", self.session_id, len(self._pending))
            self._pending.clear()
            self._current = None
