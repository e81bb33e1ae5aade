"""Engine configuration."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    api_base_url: str = "http://localhost:8080"
    api_token: str | None = None

    poll_interval_ms: int = 3000
    sound_cooldown_ms: int = 2000
    pacing_delay_ms: int = 500
    notification_dismiss_ms: int = 5000

    http_timeout_seconds: float = 30.0
    http_max_retries: int = 3
    http_retry_delay_ms: int = 1000

    channel_provider: Literal["mock", "desktop"] = "desktop"
    sound_file: str | None = None

    push_provider: Literal["mock", "http", "firebase"] = "http"
    push_device_token: str | None = None
    push_topic: str = "video-ready"

    settings_path: str = "~/.config/reelwatch/notifications.json"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="REELWATCH_", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
