import logging

from fastapi import FastAPI

from textwall.api.routes import router
from textwall.config import AppConfig, AppKind, load_config
from textwall.registry import SessionRegistry
from textwall.session_app import SessionApp
from textwall.settings_client import SettingsClient
from textwall.teleprompter.session import TeleprompterApp
from textwall.tictactoe.session import TicTacToeApp


def build_session_app(config: AppConfig) -> SessionApp:
    if config.app_kind == AppKind.tictactoe:
        return TicTacToeApp(package_name=config.package_name)
    return TeleprompterApp(package_name=config.package_name, interval_ms=config.scroll_interval_ms)


def build_registry(config: AppConfig) -> SessionRegistry:
    settings_client = SettingsClient(
        base_url=config.settings_base_url,
        package_name=config.package_name,
        timeout_s=config.settings_timeout_s,
    )
    return SessionRegistry(app=build_session_app(config), settings_client=settings_client, api_key=config.api_key)


config = load_config()

# Configure logging
logging.basicConfig(level=config.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="textwall", version="0.1.0")
app.state.config = config
app.state.registry = build_registry(config)
app.include_router(router)


@app.on_event("shutdown")
async def _shutdown() -> None:
    app.state.registry.shutdown()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "textwall", "version": "0.1.0", "app": config.package_name}
