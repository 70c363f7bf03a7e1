from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from dotenv import load_dotenv

from textwall.teleprompter.scroll import clamp_interval_ms


class AppKind(StrEnum):
    teleprompter = "teleprompter"
    tictactoe = "tictactoe"


@dataclass(frozen=True, slots=True)
class AppConfig:
    app_kind: AppKind = AppKind.teleprompter
    package_name: str = "com.augmentos.teleprompter"
    api_key: str = "test_key"
    cloud_host: str = "cloud"
    settings_timeout_s: float = 5.0
    scroll_interval_ms: int = 500
    log_level: str = "DEBUG"

    @property
    def settings_base_url(self) -> str:
        return f"http://{self.cloud_host}"


def load_config(*, env: Mapping[str, str] | None = None, dotenv_path: Path | None = None) -> AppConfig:
    """Build config from the environment.

    When `env` is omitted, a `.env` file (if any) is loaded first without
    overriding variables that are already set.
    """

    if env is None:
        load_dotenv(dotenv_path=dotenv_path, override=False)
        env = os.environ

    raw_kind = env.get("TEXTWALL_APP", AppKind.teleprompter.value).strip().lower()
    try:
        kind = AppKind(raw_kind)
    except ValueError as e:
        allowed = ",".join(k.value for k in AppKind)
        raise ValueError(f"TEXTWALL_APP must be one of {allowed}, got {raw_kind!r}") from e

    return AppConfig(
        app_kind=kind,
        package_name=env.get("TEXTWALL_PACKAGE_NAME", f"com.augmentos.{kind.value}"),
        api_key=env.get("TEXTWALL_API_KEY", "test_key"),
        cloud_host=env.get("CLOUD_HOST_NAME", "cloud"),
        settings_timeout_s=float(env.get("TEXTWALL_SETTINGS_TIMEOUT_S", "5.0")),
        scroll_interval_ms=clamp_interval_ms(int(env.get("TEXTWALL_SCROLL_INTERVAL_MS", "500"))),
        log_level=env.get("TEXTWALL_LOG_LEVEL", "DEBUG").upper(),
    )
