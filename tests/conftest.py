from __future__ import annotations

from datetime import datetime
from typing import Callable

import pytest

from supportchat.core.config import Settings
from supportchat.ratelimit import config as ratelimit_config
from tests.helpers import NOW


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    for name in (
        "SUPPORTCHAT_POLICY_OVERRIDES_JSON",
        "SUPPORTCHAT_CHAT_COST",
        "SUPPORTCHAT_CHAT_COOLDOWN_SECONDS",
        "SUPPORTCHAT_NAMESPACE",
    ):
        monkeypatch.delenv(name, raising=False)
    ratelimit_config.reload_config()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        values = dict(
            chat_cost=5,
            chat_cooldown_seconds=30,
            send_timeout_s=1.0,
            feed_retry_initial_s=0.05,
            feed_retry_max_s=0.2,
        )
        values.update(overrides)
        return Settings(**values)

    return _make

