from __future__ import annotations

from typing import Any, Protocol

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from textwall.core.errors import TransportClosed


class Transport(Protocol):
    """Outbound half of a session connection."""

    @property
    def is_open(self) -> bool:  # pragma: no cover
        ...

    async def send_json(self, payload: dict[str, Any]) -> None:  # pragma: no cover
        ...


class WebSocketTransport:
    """Transport over a FastAPI WebSocket the display cloud connected to."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    def mark_closed(self) -> None:
        self._closed = True

    async def send_json(self, payload: dict[str, Any]) -> None:
        if not self.is_open:
            raise TransportClosed("WebSocket is not open")
        try:
            await self._ws.send_json(payload)
        except (WebSocketDisconnect, RuntimeError) as e:
            self._closed = True
            raise TransportClosed(str(e)) from e
