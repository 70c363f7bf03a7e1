from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from textwall.core.display import Defer, SessionQueue, Show
from textwall.core.errors import TransportClosed


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_steps_run_in_order(recorded: tuple[list[str], Callable[[str], Any]]) -> None:
    texts, send = recorded
    queue = SessionQueue(session_id="s1", send=send)
    queue.push([Show("a"), Show("b", hold_ms=1), Show("c")])
    await queue.drain()
    assert texts == ["a", "b", "c"]
    assert not queue.running
    assert queue.pending == ()


@pytest.mark.asyncio
async def test_defer_follow_ups_run_before_older_steps(recorded: tuple[list[str], Callable[[str], Any]]) -> None:
    texts, send = recorded
    queue = SessionQueue(session_id="s1", send=send)
    queue.push([Defer(lambda: [Show("follow-up 1"), Show("follow-up 2")]), Show("later")])
    await queue.drain()
    assert texts == ["follow-up 1", "follow-up 2", "later"]


@pytest.mark.asyncio
async def test_replace_cancels_pending_timer(recorded: tuple[list[str], Callable[[str], Any]]) -> None:
    texts, send = recorded
    queue = SessionQueue(session_id="s1", send=send)
    queue.push([Show("first"), Defer(lambda: [Show("never")], delay_ms=10_000)])
    await _settle()
    assert texts == ["first"]

    queue.replace([Show("second")])
    await queue.drain()
    assert texts == ["first", "second"]


@pytest.mark.asyncio
async def test_supersede_drops_only_tagged_steps(recorded: tuple[list[str], Callable[[str], Any]]) -> None:
    texts, send = recorded
    queue = SessionQueue(session_id="s1", send=send)
    queue.push(
        [
            Defer(lambda: [Show("tagged")], delay_ms=10_000, tag="note"),
            Show("untagged"),
            Show("also tagged", tag="note"),
        ]
    )
    await _settle()
    assert queue.current is not None and queue.current.tag == "note"

    queue.supersede("note", [Show("replacement")])
    await queue.drain()
    assert texts == ["untagged", "replacement"]


@pytest.mark.asyncio
async def test_cancel_stops_everything(recorded: tuple[list[str], Callable[[str], Any]]) -> None:
    texts, send = recorded
    queue = SessionQueue(session_id="s1", send=send)
    queue.push([Defer(lambda: [Show("never")], delay_ms=10_000)])
    await _settle()
    queue.cancel()
    await _settle()
    assert texts == []
    assert not queue.running
    assert queue.current is None


@pytest.mark.asyncio
async def test_closed_transport_drops_pending_steps() -> None:
    sent: list[str] = []

    async def send(text: str) -> None:
        if len(sent) == 1:
            raise TransportClosed("gone")
        sent.append(text)

    queue = SessionQueue(session_id="s1", send=send)
    queue.push([Show("a"), Show("b"), Show("c")])
    await queue.drain()
    assert sent == ["a"]
    assert queue.pending == ()
    assert not queue.running
