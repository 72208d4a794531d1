# supportchat/core/config.py
"""Runtime settings for the support chat core."""

from __future__ import annotations

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_RECENT_WINDOW = 50


class Settings(BaseSettings):
    """Runtime settings loaded from environment."""

    redis_url: str = "redis://localhost:6379"
    namespace: str = "supportchat"

    # Economic gate for the cost-bearing (global) channel
    chat_cost: int = Field(default=0, ge=0)
    chat_cooldown_seconds: int = Field(default=0, ge=0)

    recent_window: int = Field(default=DEFAULT_RECENT_WINDOW, ge=1)
    send_timeout_s: float = Field(default=10.0, gt=0)
    sub_admin_can_moderate: bool = True

    # Resubscribe backoff after a feed subscription error
    feed_retry_initial_s: float = Field(default=0.5, gt=0)
    feed_retry_max_s: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="SUPPORTCHAT_", env_file=".env", extra="ignore")

    @field_validator("namespace")
    @classmethod
    def _strip_namespace(cls, value: str) -> str:
        value = value.strip().strip(":")
        if not value:
            raise ValueError("namespace must not be empty")
        return value

    @field_validator("feed_retry_max_s")
    @classmethod
    def _max_not_below_initial(cls, value: float, info) -> float:
        initial = info.data.get("feed_retry_initial_s")
        if initial is not None and value < initial:
            raise ValueError("feed_retry_max_s must be >= feed_retry_initial_s")
        return value


settings = Settings()


def reload_settings() -> Settings:
    """Re-read settings from the environment and replace the module singleton."""
    global settings

    settings = Settings()
    logger.info(
        "[CONFIG] Reloaded chat settings: cost=%s cooldown=%ss window=%s",
        settings.chat_cost,
        settings.chat_cooldown_seconds,
        settings.recent_window,
    )
    return settings
