from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",  # variáveis extras no .env não quebram o boot
    )

    # app
    app_name: str = "DeskThing Relay"
    log_level: str = "INFO"
    app_env: str = "dev"

    # infra
    redis_url: str = "redis://localhost:6379/0"
    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # playback poller (defaults antes de existir settings salvo no redis)
    refresh_interval_ms: int = 15000
    playback_location: Optional[str] = None

    # user input (request-user-data)
    input_timeout_s: float = 300.0

    # clients
    client_send_timeout_s: float = 5.0


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
