from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx
import pytest

from textwall.registry import SessionRegistry
from textwall.settings_client import SettingsClient
from textwall.teleprompter.session import SETTINGS_NOTICE, TeleprompterApp
from textwall.tictactoe.search import Difficulty
from textwall.tictactoe.session import GameTimings, TicTacToeApp

INSTANT = GameTimings(ai_move_ms=0, conclusion_ms=0, advisory_ms=0, settings_notice_ms=0)


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _settings_client(payload: Any, *, status: int = 200, package: str = "com.augmentos.teleprompter") -> SettingsClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=payload)

    return SettingsClient(base_url="http://cloud", package_name=package, transport=httpx.MockTransport(handler))


def _transcript(text: str, *, final: bool = True) -> str:
    return json.dumps(
        {
            "type": "data_stream",
            "streamType": "transcription",
            "data": {"text": text, "isFinal": final, "transcribeLanguage": "en-US"},
        }
    )


def _game_registry(scripted_rng, **kwargs: Any) -> SessionRegistry:
    return SessionRegistry(app=TicTacToeApp(timings=INSTANT), rng_factory=scripted_rng, **kwargs)


@pytest.mark.asyncio
async def test_open_sends_connection_init(transport_factory, scripted_rng) -> None:
    registry = _game_registry(scripted_rng, api_key="secret")
    t = transport_factory()
    await registry.open(session_id="s1", user_id="u1", transport=t)

    assert t.sent == [
        {
            "type": "tpa_connection_init",
            "sessionId": "s1",
            "packageName": "com.augmentos.tictactoe",
            "apiKey": "secret",
        }
    ]
    assert registry.controller_for("u1") is not None
    assert registry.sessions_for("u1") == ["s1"]


@pytest.mark.asyncio
async def test_sessions_of_one_user_share_a_controller(transport_factory, scripted_rng) -> None:
    registry = _game_registry(scripted_rng)
    await registry.open(session_id="s1", user_id="u1", transport=transport_factory())
    controller = registry.controller_for("u1")
    await registry.open(session_id="s2", user_id="u1", transport=transport_factory())
    await registry.open(session_id="s3", user_id="u2", transport=transport_factory())

    assert registry.controller_for("u1") is controller
    assert registry.controller_for("u2") is not controller
    assert registry.sessions_for("u1") == ["s1", "s2"]

    await registry.close("s1")
    assert registry.controller_for("u1") is controller

    await registry.close("s2")
    assert registry.controller_for("u1") is None
    assert registry.sessions_for("u1") == []
    assert registry.controller_for("u2") is not None


@pytest.mark.asyncio
async def test_reopen_keeps_controller_and_ignores_stale_close(transport_factory, scripted_rng) -> None:
    registry = _game_registry(scripted_rng)
    old, new = transport_factory(), transport_factory()
    await registry.open(session_id="s1", user_id="u1", transport=old)
    controller = registry.controller_for("u1")
    controller.submit_user_move(5)

    await registry.open(session_id="s1", user_id="u1", transport=new)
    await registry.close("s1", transport=old)

    assert registry.session("s1").transport is new
    assert registry.controller_for("u1") is controller
    assert registry.controller_for("u1").state.board[4] is not None


@pytest.mark.asyncio
async def test_ack_subscribes_and_renders(transport_factory, scripted_rng) -> None:
    registry = _game_registry(scripted_rng)
    t = transport_factory()
    await registry.open(session_id="s1", user_id="u1", transport=t)
    await registry.handle_message(session_id="s1", message=json.dumps({"type": "tpa_connection_ack"}))
    await registry.session("s1").queue.drain()

    [sub] = t.of_type("subscription_update")
    assert sub["subscriptions"] == ["transcription"]
    assert sub["sessionId"] == "s1"

    [display] = t.of_type("display_event")
    assert display["view"] == "main"
    assert display["layout"]["layoutType"] == "text_wall"
    assert display["durationMs"] == 60_000
    assert display["forceDisplay"] is True
    assert display["layout"]["text"] == registry.controller_for("u1").render()


@pytest.mark.asyncio
async def test_only_final_transcripts_reach_the_game(transport_factory, scripted_rng) -> None:
    registry = _game_registry(scripted_rng)
    t = transport_factory()
    await registry.open(session_id="s1", user_id="u1", transport=t)
    controller = registry.controller_for("u1")

    await registry.handle_message(session_id="s1", message=_transcript("5", final=False))
    await registry.handle_message(session_id="s1", message=_transcript("   ", final=True))
    assert controller.state.board[4] is None

    await registry.handle_message(session_id="s1", message=_transcript(" Five? No, 5 "))
    await registry.session("s1").queue.drain()
    assert controller.state.board[4] is not None
    assert len(t.displayed()) == 2


@pytest.mark.asyncio
async def test_bad_messages_are_dropped(transport_factory, scripted_rng, caplog) -> None:
    registry = _game_registry(scripted_rng)
    t = transport_factory()
    await registry.open(session_id="s1", user_id="u1", transport=t)

    with caplog.at_level(logging.WARNING):
        await registry.handle_message(session_id="s1", message="{not json")
        await registry.handle_message(session_id="s1", message={"no_type": True})
        await registry.handle_message(session_id="nope", message={"type": "tpa_connection_ack"})

    assert len(t.sent) == 1
    assert "error parsing message" in caplog.text
    assert "unknown session" in caplog.text


@pytest.mark.asyncio
async def test_settings_loaded_on_open(transport_factory) -> None:
    client = _settings_client(
        {"settings": [{"key": "difficulty", "value": "Impossible"}]},
        package="com.augmentos.tictactoe",
    )
    registry = SessionRegistry(app=TicTacToeApp(timings=INSTANT), settings_client=client)
    await registry.open(session_id="s1", user_id="u1", transport=transport_factory())
    assert registry.controller_for("u1").state.difficulty is Difficulty.impossible


@pytest.mark.asyncio
async def test_settings_failure_falls_back_to_defaults(transport_factory, caplog) -> None:
    registry = SessionRegistry(app=TeleprompterApp(), settings_client=_settings_client({}, status=500))
    with caplog.at_level(logging.WARNING):
        await registry.open(session_id="s1", user_id="u1", transport=transport_factory())

    controller = registry.controller_for("u1")
    assert controller.engine.line_width == 38
    assert controller.engine.visible_lines == 4
    assert controller.engine.words_per_minute == 120
    assert "Falling back to default settings" in caplog.text
    registry.shutdown()


@pytest.mark.asyncio
async def test_settings_update_refreshes_open_sessions_and_prunes_closed(transport_factory) -> None:
    client = _settings_client(
        {
            "settings": [
                {"key": "line_width", "value": 20},
                {"key": "number_of_lines", "value": "2"},
                {"key": "scroll_speed", "value": 200},
                {"key": "custom_text", "value": "hello from the settings page"},
            ]
        }
    )
    registry = SessionRegistry(app=TeleprompterApp(), settings_client=client)
    a, b, gone = transport_factory(), transport_factory(), transport_factory()
    for sid, t in (("a", a), ("b", b), ("gone", gone)):
        await registry.open(session_id=sid, user_id="u1", transport=t)
    gone.open = False

    assert await registry.update_settings("u1")
    await _settle()

    assert a.displayed() == [SETTINGS_NOTICE]
    assert b.displayed() == [SETTINGS_NOTICE]
    assert gone.displayed() == []
    assert registry.sessions_for("u1") == ["a", "b"]

    controller = registry.controller_for("u1")
    assert controller.engine.line_width == 20
    assert controller.engine.visible_lines == 2
    assert controller.engine.words_per_minute == 200
    assert controller.engine.text == "hello from the settings page"
    registry.shutdown()


@pytest.mark.asyncio
async def test_update_for_unknown_user_reports_no_sessions() -> None:
    registry = SessionRegistry(app=TeleprompterApp())
    assert not await registry.update_settings("nobody")


@pytest.mark.asyncio
async def test_settings_update_message_triggers_refresh(transport_factory, scripted_rng) -> None:
    registry = _game_registry(scripted_rng)
    t = transport_factory()
    await registry.open(session_id="s1", user_id="u1", transport=t)
    await registry.handle_message(session_id="s1", message={"type": "settings_update"})
    await registry.session("s1").queue.drain()
    assert t.displayed()[0] == "Settings updated. Difficulty: Easy"


@pytest.mark.asyncio
async def test_closed_transport_stops_display(transport_factory, scripted_rng) -> None:
    registry = _game_registry(scripted_rng)
    t = transport_factory()
    await registry.open(session_id="s1", user_id="u1", transport=t)
    t.open = False
    await registry.handle_message(session_id="s1", message=_transcript("5"))
    await registry.session("s1").queue.drain()
    assert t.displayed() == []
    assert not registry.session("s1").queue.running


@pytest.mark.asyncio
async def test_refresh_pruning_the_last_session_releases_controller(transport_factory, scripted_rng) -> None:
    registry = _game_registry(scripted_rng)
    t = transport_factory()
    await registry.open(session_id="s1", user_id="u1", transport=t)
    stale = registry.controller_for("u1")
    stale.submit_user_move(5)

    t.open = False
    assert not registry.refresh("u1")
    await registry.close("s1", transport=t)

    assert registry.sessions_for("u1") == []
    assert registry.controller_for("u1") is None

    await registry.open(session_id="s2", user_id="u1", transport=transport_factory())
    fresh = registry.controller_for("u1")
    assert fresh is not stale
    assert fresh.state.board[4] is None


@pytest.mark.asyncio
async def test_move_on_second_session_during_ai_turn_ends_on_board(transport_factory, scripted_rng) -> None:
    timings = GameTimings(ai_move_ms=30, conclusion_ms=0, advisory_ms=0, settings_notice_ms=0)
    registry = SessionRegistry(app=TicTacToeApp(timings=timings), rng_factory=scripted_rng)
    a, b = transport_factory(), transport_factory()
    await registry.open(session_id="a", user_id="u1", transport=a)
    await registry.open(session_id="b", user_id="u1", transport=b)
    controller = registry.controller_for("u1")

    await registry.handle_message(session_id="a", message=_transcript("5"))
    await _settle()
    await registry.handle_message(session_id="b", message=_transcript("3"))
    await registry.session("a").queue.drain()
    await registry.session("b").queue.drain()

    assert b.displayed()[0] == "Please wait, it's not your turn."
    assert b.displayed()[-1] == controller.render()
    assert a.displayed()[-1] == controller.render()
    assert controller.users_turn
    assert sum(cell is not None for cell in controller.state.board) == 2
