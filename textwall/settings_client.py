from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from textwall.api.models import SettingEntry, SettingsResponse
from textwall.core.errors import SettingsFetchFailure

logger = logging.getLogger(__name__)


class SettingsClient:
    """Reads a user's app settings from the cloud settings service.

    `GET {base_url}/tpasettings/user/{package_name}` with the user id as bearer
    token; the response is `{"settings": [{"key": ..., "value": ...}, ...]}`.
    `transport` lets tests plug in `httpx.MockTransport`.
    """

    def __init__(
        self,
        *,
        base_url: str,
        package_name: str,
        timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.package_name = package_name
        self.timeout_s = timeout_s
        self._transport = transport

    async def fetch(self, user_id: str) -> list[SettingEntry]:
        url = f"{self.base_url}/tpasettings/user/{self.package_name}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
                resp = await client.get(url, headers={"Authorization": f"Bearer {user_id}"})
                resp.raise_for_status()
                payload = SettingsResponse.model_validate(resp.json())
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            raise SettingsFetchFailure(f"Could not fetch settings for user {user_id}: {e}") from e

        logger.debug("Fetched %d settings for user %s", len(payload.settings), user_id)
        return payload.settings
