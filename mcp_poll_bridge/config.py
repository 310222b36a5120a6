from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["LogLevel", "Settings"]

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Runtime settings, read from ``MCP_POLL_BRIDGE_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="MCP_POLL_BRIDGE_", extra="ignore")

    server_name: str = "weather"
    server_version: str = "1.0.0"

    nws_api_base: str = "https://api.weather.gov"
    user_agent: str = "weather-app/1.0"
    request_timeout: float = 30.0

    # None keeps sessions alive for the whole process lifetime
    session_idle_timeout: float | None = None

    log_level: LogLevel = "INFO"

    host: str = "0.0.0.0"
    port: int = 8080
