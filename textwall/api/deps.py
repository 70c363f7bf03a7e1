from __future__ import annotations

from fastapi.requests import HTTPConnection

from textwall.config import AppConfig
from textwall.registry import SessionRegistry


def get_registry(conn: HTTPConnection) -> SessionRegistry:
    return conn.app.state.registry


def get_config(conn: HTTPConnection) -> AppConfig:
    return conn.app.state.config
