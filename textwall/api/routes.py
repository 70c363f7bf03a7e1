from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from textwall.api.deps import get_config, get_registry
from textwall.api.models import SettingsNotification
from textwall.config import AppConfig
from textwall.core.errors import TransportClosed
from textwall.registry import SessionRegistry
from textwall.transport import WebSocketTransport

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/session/{session_id}")
async def session_ws(
    websocket: WebSocket,
    session_id: str,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> None:
    """One display session. Connecting is the session-open event."""

    await websocket.accept()
    transport = WebSocketTransport(websocket)
    try:
        await registry.open(session_id=session_id, user_id=user_id, transport=transport)
        while True:
            message = await websocket.receive_text()
            await registry.handle_message(session_id=session_id, message=message)
    except (WebSocketDisconnect, TransportClosed):
        logger.info("[Session %s]: disconnected", session_id)
    finally:
        transport.mark_closed()
        await registry.close(session_id, transport=transport)


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health")
async def health(config: AppConfig = Depends(get_config)) -> dict[str, str]:
    return {"status": "healthy", "app": config.package_name}


@router.post("/settings")
async def settings_updated(
    payload: SettingsNotification,
    registry: SessionRegistry = Depends(get_registry),
) -> dict[str, str]:
    logger.info("Received settings update for user %s", payload.user_id_for_settings)
    await registry.update_settings(payload.user_id_for_settings)
    return {"status": "settings updated"}
