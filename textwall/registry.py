from __future__ import annotations

import json
import logging
import random
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic

from pydantic import ValidationError

from textwall.api.models import (
    CloudMessageType,
    ConnectionInit,
    DisplayRequest,
    InboundMessage,
    StreamType,
    SubscriptionUpdate,
    TextWallLayout,
    TranscriptionData,
)
from textwall.core.display import Sender, SessionQueue
from textwall.core.errors import SettingsFetchFailure, TransportClosed
from textwall.session_app import ControllerT, SessionApp, SettingsT
from textwall.settings_client import SettingsClient
from textwall.transport import Transport

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionRecord:
    session_id: str
    user_id: str
    transport: Transport
    queue: SessionQueue


class SessionRegistry(Generic[ControllerT, SettingsT]):
    """Process-wide table of live sessions and per-user controllers.

    Contract:
      - controllers are keyed by user id, so every session a user has open
        shares one game/scroll state and reconnects resume in place;
      - transports and display queues are keyed by session id;
      - a user's controller is discarded when their last session closes.

    Everything runs on one event loop; nothing here needs a lock.
    """

    def __init__(
        self,
        *,
        app: SessionApp[ControllerT, SettingsT],
        settings_client: SettingsClient | None = None,
        api_key: str = "",
        rng_factory: Callable[[], random.Random] = random.Random,
    ) -> None:
        self.app = app
        self._settings_client = settings_client
        self._api_key = api_key
        self._rng_factory = rng_factory
        self._sessions: dict[str, SessionRecord] = {}
        # user id -> session ids, in open order
        self._user_sessions: dict[str, dict[str, None]] = {}
        self._controllers: dict[str, ControllerT] = {}

    # ---- lookups ----

    def session(self, session_id: str) -> SessionRecord | None:
        return self._sessions.get(session_id)

    def sessions_for(self, user_id: str) -> list[str]:
        return list(self._user_sessions.get(user_id, {}))

    def controller_for(self, user_id: str) -> ControllerT | None:
        return self._controllers.get(user_id)

    # ---- lifecycle ----

    async def open(self, *, session_id: str, user_id: str, transport: Transport) -> SessionRecord:
        previous = self._sessions.get(session_id)
        if previous is not None:
            # Same session id reconnecting: keep the user's controller.
            logger.info("[Session %s]: reopened, replacing previous transport", session_id)
            self._prune(previous)

        record = SessionRecord(
            session_id=session_id,
            user_id=user_id,
            transport=transport,
            queue=SessionQueue(session_id=session_id, send=self._sender_for(session_id, transport)),
        )
        self._sessions[session_id] = record
        self._user_sessions.setdefault(user_id, {})[session_id] = None
        logger.info("[Session %s]: opened for user %s", session_id, user_id)

        init = ConnectionInit(session_id=session_id, package_name=self.app.package_name, api_key=self._api_key)
        await transport.send_json(init.to_wire())

        settings = await self.load_settings(user_id)
        controller = self._controllers.get(user_id)
        if controller is None:
            self.get_or_create(user_id, settings=settings)
        else:
            self.app.apply_settings(controller, settings)
        return record

    def get_or_create(self, user_id: str, *, settings: SettingsT | None = None) -> ControllerT:
        controller = self._controllers.get(user_id)
        if controller is None:
            controller = self.app.create_controller(
                settings=settings if settings is not None else self.app.default_settings(),
                rng=self._rng_factory(),
            )
            self._controllers[user_id] = controller
            logger.info("Created %s controller for user %s", self.app.package_name, user_id)
        return controller

    async def close(self, session_id: str, *, transport: Transport | None = None) -> None:
        """Tear down one session.

        If `transport` is given, only close when it is still the session's
        transport (a reconnect may already have replaced it).
        """

        record = self._sessions.get(session_id)
        if record is None:
            return
        if transport is not None and record.transport is not transport:
            return

        record.queue.cancel()
        del self._sessions[session_id]

        user_sessions = self._user_sessions.get(record.user_id, {})
        user_sessions.pop(session_id, None)
        if not user_sessions:
            self._user_sessions.pop(record.user_id, None)
            self._controllers.pop(record.user_id, None)
            logger.info("[Session %s]: last session for user %s closed, controller released", session_id, record.user_id)
        else:
            logger.info("[Session %s]: closed", session_id)

    def shutdown(self) -> None:
        for record in self._sessions.values():
            record.queue.cancel()
        self._sessions.clear()
        self._user_sessions.clear()
        self._controllers.clear()

    # ---- settings ----

    async def load_settings(self, user_id: str) -> SettingsT:
        if self._settings_client is None:
            return self.app.default_settings()
        try:
            entries = await self._settings_client.fetch(user_id)
            return self.app.parse_settings(entries)
        except SettingsFetchFailure as e:
            logger.warning("Falling back to default settings for user %s: %s", user_id, e)
            return self.app.default_settings()

    async def update_settings(self, user_id: str) -> bool:
        """Re-fetch settings, apply them to the live controller and refresh sessions."""

        settings = await self.load_settings(user_id)
        controller = self._controllers.get(user_id)
        if controller is not None:
            self.app.apply_settings(controller, settings)
        return self.refresh(user_id)

    def refresh(self, user_id: str) -> bool:
        """Re-render every open session of a user; prune sessions whose transport closed.

        Returns True if any session is still tracked for the user.
        """

        session_ids = self.sessions_for(user_id)
        if not session_ids:
            logger.info("No active sessions found for user %s", user_id)
            return False

        controller = self._controllers.get(user_id)
        if controller is None:
            logger.info("No controller found for user %s", user_id)
            return False

        logger.info("Refreshing %d sessions for user %s", len(session_ids), user_id)
        for session_id in session_ids:
            record = self._sessions[session_id]
            if record.transport.is_open:
                self.app.on_refresh(controller=controller, queue=record.queue)
            else:
                logger.warning("[Session %s]: transport not open, removing from tracking", session_id)
                self._prune(record, release_controller=True)
        return bool(self.sessions_for(user_id))

    def _prune(self, record: SessionRecord, *, release_controller: bool = False) -> None:
        # A same-id reopen keeps the controller; a dead last session releases it.
        record.queue.cancel()
        self._sessions.pop(record.session_id, None)
        user_sessions = self._user_sessions.get(record.user_id)
        if user_sessions is not None:
            user_sessions.pop(record.session_id, None)
            if not user_sessions:
                self._user_sessions.pop(record.user_id, None)
                if release_controller:
                    self._controllers.pop(record.user_id, None)
                    logger.info("[Session %s]: pruned last session for user %s, controller released", record.session_id, record.user_id)

    # ---- inbound events ----

    async def handle_message(self, *, session_id: str, message: str | Mapping[str, Any]) -> None:
        record = self._sessions.get(session_id)
        if record is None:
            logger.warning("[Session %s]: message for unknown session dropped", session_id)
            return

        try:
            raw = json.loads(message) if isinstance(message, str) else dict(message)
            inbound = InboundMessage.model_validate(raw)
        except (ValueError, ValidationError) as e:
            logger.error("[Session %s]: error parsing message: %s", session_id, e)
            return

        if inbound.type == CloudMessageType.connection_ack:
            await self._on_connection_ack(record)
        elif inbound.type == CloudMessageType.data_stream:
            self._on_data_stream(record, inbound)
        elif inbound.type == CloudMessageType.settings_update:
            await self.update_settings(record.user_id)
        elif inbound.type == CloudMessageType.connection_error:
            logger.error("[Session %s]: connection error from cloud: %s", session_id, raw)
        else:
            logger.info("[Session %s]: unknown message type %s", session_id, inbound.type)

    async def _on_connection_ack(self, record: SessionRecord) -> None:
        logger.info("[Session %s]: connected, starting %s", record.session_id, self.app.package_name)
        sub = SubscriptionUpdate(
            package_name=self.app.package_name,
            session_id=record.session_id,
            subscriptions=list(self.app.subscriptions),
        )
        await record.transport.send_json(sub.to_wire())
        controller = self.get_or_create(record.user_id)
        self.app.on_connected(controller=controller, queue=record.queue)

    def _on_data_stream(self, record: SessionRecord, inbound: InboundMessage) -> None:
        if inbound.stream_type != StreamType.transcription or inbound.data is None:
            return
        try:
            data = TranscriptionData.model_validate(inbound.data)
        except ValidationError as e:
            logger.error("[Session %s]: bad transcription payload: %s", record.session_id, e)
            return
        if not data.is_final:
            return

        text = data.text.strip().lower()
        if not text:
            return
        controller = self.get_or_create(record.user_id)
        self.app.on_transcript(controller=controller, queue=record.queue, text=text)

    # ---- outbound ----

    def _sender_for(self, session_id: str, transport: Transport) -> Sender:
        async def send(text: str) -> None:
            if not transport.is_open:
                raise TransportClosed(f"Session {session_id} transport is closed")
            request = DisplayRequest(
                package_name=self.app.package_name,
                session_id=session_id,
                layout=TextWallLayout(text=text),
                duration_ms=self.app.display_duration_ms,
            )
            logger.debug("[Session %s]: text to show:\n%s", session_id, text)
            await transport.send_json(request.to_wire())

        return send
