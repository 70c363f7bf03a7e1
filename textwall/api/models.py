from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class CloudMessageType(StrEnum):
    connection_ack = "tpa_connection_ack"
    connection_error = "tpa_connection_error"
    data_stream = "data_stream"
    settings_update = "settings_update"


class AppMessageType(StrEnum):
    connection_init = "tpa_connection_init"
    subscription_update = "subscription_update"
    display_request = "display_event"


class StreamType(StrEnum):
    transcription = "transcription"


class _WireModel(BaseModel):
    # Wire format is camelCase; Python code uses snake_case names.
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class InboundMessage(_WireModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str
    stream_type: str | None = Field(default=None, alias="streamType")
    data: dict[str, Any] | None = None


class TranscriptionData(_WireModel):
    text: str = ""
    is_final: bool = Field(default=False, alias="isFinal")
    language: str | None = Field(default=None, alias="transcribeLanguage")


class ConnectionInit(_WireModel):
    type: Literal["tpa_connection_init"] = AppMessageType.connection_init.value
    session_id: str = Field(alias="sessionId")
    package_name: str = Field(alias="packageName")
    api_key: str = Field(alias="apiKey")


class SubscriptionUpdate(_WireModel):
    type: Literal["subscription_update"] = AppMessageType.subscription_update.value
    package_name: str = Field(alias="packageName")
    session_id: str = Field(alias="sessionId")
    subscriptions: list[str] = Field(default_factory=list)


class TextWallLayout(_WireModel):
    layout_type: Literal["text_wall"] = Field(default="text_wall", alias="layoutType")
    text: str


class DisplayRequest(_WireModel):
    type: Literal["display_event"] = AppMessageType.display_request.value
    view: Literal["main"] = "main"
    package_name: str = Field(alias="packageName")
    session_id: str = Field(alias="sessionId")
    layout: TextWallLayout
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
    duration_ms: int = Field(alias="durationMs")
    force_display: bool = Field(default=True, alias="forceDisplay")


class SettingEntry(BaseModel):
    key: str
    value: Any = None


class SettingsResponse(BaseModel):
    settings: list[SettingEntry] = Field(default_factory=list)


class SettingsNotification(_WireModel):
    user_id_for_settings: str = Field(..., min_length=1, alias="userIdForSettings")
