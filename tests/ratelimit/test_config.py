import json

import pytest

from supportchat.core.enums import ChannelKind
from supportchat.ratelimit.config import ChatCostPolicy, get_policy, reload_config


def test_exempt_policy_is_free(make_settings):
    policy = get_policy(ChannelKind.EXEMPT, make_settings(chat_cost=9, chat_cooldown_seconds=60))

    assert policy.is_free


def test_cost_bearing_policy_comes_from_settings(make_settings):
    policy = get_policy(ChannelKind.COST_BEARING, make_settings(chat_cost=7, chat_cooldown_seconds=45))

    assert policy == ChatCostPolicy(cost=7, cooldown_seconds=45)


def test_env_overrides_apply_to_cost_bearing_only(monkeypatch, make_settings):
    monkeypatch.setenv(
        "SUPPORTCHAT_POLICY_OVERRIDES_JSON",
        json.dumps({"cost_bearing": {"cost": 2, "cooldown": 5}, "exempt": {"cost": 99}}),
    )
    reload_config()
    cfg = make_settings(chat_cost=7, chat_cooldown_seconds=45)

    assert get_policy(ChannelKind.COST_BEARING, cfg) == ChatCostPolicy(cost=2, cooldown_seconds=5)
    assert get_policy(ChannelKind.EXEMPT, cfg).is_free


def test_malformed_overrides_are_ignored(monkeypatch, make_settings):
    monkeypatch.setenv("SUPPORTCHAT_POLICY_OVERRIDES_JSON", "{not json")
    reload_config()

    policy = get_policy(ChannelKind.COST_BEARING, make_settings(chat_cost=3, chat_cooldown_seconds=0))

    assert policy.cost == 3


def test_negative_policy_rejected():
    with pytest.raises(ValueError):
        ChatCostPolicy(cost=-1)


@pytest.mark.parametrize("bad", [{"cost": -1}, {"cooldown": -5}, {"cost": "2"}, {"cost": True}])
def test_invalid_override_entries_are_dropped_at_load(monkeypatch, make_settings, bad):
    monkeypatch.setenv("SUPPORTCHAT_POLICY_OVERRIDES_JSON", json.dumps({"cost_bearing": bad}))

    active = reload_config()
    policy = get_policy(ChannelKind.COST_BEARING, make_settings(chat_cost=3, chat_cooldown_seconds=10))

    assert active["policy_overrides"] == {}
    assert policy == ChatCostPolicy(cost=3, cooldown_seconds=10)


def test_overrides_are_read_once_until_reloaded(monkeypatch, make_settings):
    monkeypatch.setenv("SUPPORTCHAT_POLICY_OVERRIDES_JSON", json.dumps({"cost_bearing": {"cost": 2}}))
    reload_config()
    monkeypatch.setenv("SUPPORTCHAT_POLICY_OVERRIDES_JSON", json.dumps({"cost_bearing": {"cost": 9}}))
    cfg = make_settings(chat_cost=7, chat_cooldown_seconds=0)

    assert get_policy(ChannelKind.COST_BEARING, cfg).cost == 2

    reload_config()

    assert get_policy(ChannelKind.COST_BEARING, cfg).cost == 9
