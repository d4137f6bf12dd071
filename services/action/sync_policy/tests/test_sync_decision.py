"""Unit tests for sync diffing and the allow/warn/block rule order."""

from __future__ import annotations

import pytest

from services.action.sync_policy.config import SyncPolicySettings
from services.action.sync_policy.domain import (
    ConflictAlertType,
    DecisionRule,
    SyncAction,
)
from services.action.sync_policy.policy import (
    alert_type_for,
    compute_diff,
    decide,
    is_sync_safe,
    strip_fields,
)
from services.state.snapshot_store.completeness import StateStats, score_completeness

_SETTINGS = SyncPolicySettings()
_KEYS = {"models": {"providers": {"anthropic": {"apiKey": "sk-1"}}}}


def _decide(local: object, remote: object, *, local_stats=None, remote_stats=None):
    return decide(
        local_config=local,
        remote_config=remote,
        local_score=score_completeness(local, local_stats),
        remote_score=score_completeness(remote, remote_stats),
        settings=_SETTINGS,
    )


def test_emptied_channels_block_sync() -> None:
    decision = _decide({"channels": {}}, {"channels": {"telegram": {"botToken": "x"}}})

    assert decision.action is SyncAction.BLOCK
    assert decision.rule is DecisionRule.CHANNELS_EMPTIED
    assert decision.requires_confirmation is True
    assert decision.diff.will_lose == ("Channel: telegram",)
    assert alert_type_for(decision) is ConflictAlertType.EMPTY_OVERWRITES_FULL


def test_emptied_channels_win_over_score_rules() -> None:
    """The channel rule fires even when the score gap alone would only warn."""
    remote = {"channels": {"discord": {"token": "t"}}}

    decision = _decide({"gateway": {"port": 1}}, remote)

    assert decision.rule is DecisionRule.CHANNELS_EMPTIED


def test_large_score_gap_blocks() -> None:
    local = {"channels": {"telegram": {"on": True}}}
    remote = {"channels": {"telegram": {"on": True}}, **_KEYS}

    decision = _decide(
        local,
        remote,
        remote_stats=StateStats(devices_count=1, conversations_count=2),
    )

    assert decision.action is SyncAction.BLOCK
    assert decision.rule is DecisionRule.SCORE_COLLAPSE
    assert "gap of 60 points" in decision.reason
    assert alert_type_for(decision) is ConflictAlertType.CONFIG_REGRESSION


def test_moderate_score_gap_warns() -> None:
    channels = {"channels": {"telegram": {"on": True}}}

    decision = _decide(
        {**channels, **_KEYS},
        {**channels, **_KEYS},
        remote_stats=StateStats(conversations_count=1),
    )

    assert decision.action is SyncAction.WARN
    assert decision.rule is DecisionRule.SCORE_REGRESSION
    assert decision.diff.will_lose == ("Conversation history",)


def test_low_local_score_warns_only_when_backup_is_better() -> None:
    channels = {"channels": {"telegram": {"on": True}}}

    worse = _decide(channels, {**channels, "gateway": {}})
    empty_backup = _decide(channels, None)

    assert worse.rule is DecisionRule.CLEAN
    assert empty_backup.action is SyncAction.ALLOW
    assert empty_backup.diff.will_add == ("Channel: telegram",)


def test_below_minimum_rule() -> None:
    local = {"channels": {"telegram": {"on": True}}}
    remote = {"channels": {"telegram": {"on": True}}, "x": 1}

    decision = decide(
        local_config=local,
        remote_config=remote,
        local_score=score_completeness(local),
        remote_score=score_completeness(remote, StateStats(devices_count=1)),
        settings=SyncPolicySettings(
            min_score_to_sync=50, warning_score_diff=30, blocking_score_diff=40
        ),
    )

    assert decision.action is SyncAction.WARN
    assert decision.rule is DecisionRule.BELOW_MINIMUM
    assert decision.reason.endswith("below the minimum of 50")


def test_lost_channel_at_equal_score_warns() -> None:
    local = {"channels": {"telegram": {"on": True}, "slack": {"on": True}}, **_KEYS}
    remote = {"channels": {"telegram": {"on": True}, "discord": {"on": True}}, **_KEYS}
    stats = StateStats(devices_count=1, conversations_count=1)

    decision = _decide(local, remote, local_stats=stats, remote_stats=stats)

    assert decision.action is SyncAction.WARN
    assert decision.rule is DecisionRule.DATA_LOSS
    assert decision.reason == "Sync would lose: Channel: discord"
    assert decision.diff.will_keep == (
        "Channel: telegram",
        "API Keys",
        "Conversation history",
        "Device pairings",
    )
    assert decision.diff.will_add == ("Channel: slack",)
    assert alert_type_for(decision) is ConflictAlertType.CHANNEL_LOST


@pytest.mark.parametrize("value", [None, False, 0, ""])
def test_falsy_local_channel_counts_as_lost(value: object) -> None:
    local = score_completeness({"channels": {"telegram": value}})
    remote = score_completeness({"channels": {"telegram": {}}})

    diff = compute_diff(
        {"channels": {"telegram": value}}, {"channels": {"telegram": {}}}, local, remote
    )

    assert diff.will_lose == ("Channel: telegram",)


def test_clean_decision_needs_no_confirmation() -> None:
    config = {"channels": {"telegram": {"on": True}}, **_KEYS}

    decision = _decide(config, config)

    assert decision.action is SyncAction.ALLOW
    assert decision.requires_confirmation is False
    assert decision.reason == "Configuration completeness is normal"


def test_sync_safety_flag() -> None:
    full = score_completeness({"channels": {"a": {}}, **_KEYS})
    bare = score_completeness({"channels": {}})
    nothing = score_completeness(None)

    assert is_sync_safe(full, full, _SETTINGS) is True
    assert is_sync_safe(bare, full, _SETTINGS) is False
    assert is_sync_safe(nothing, nothing, _SETTINGS) is True


def test_strip_fields_leaves_original_untouched() -> None:
    config = {
        "models": {
            "providers": {
                "anthropic": {"apiKey": "sk-a", "baseUrl": "u"},
                "openai": {"model": "m"},
            }
        }
    }

    stripped, removed = strip_fields(config, _SETTINGS.env_only_fields)

    assert removed == ["models.providers.anthropic.apiKey"]
    assert stripped["models"]["providers"]["anthropic"] == {"baseUrl": "u"}
    assert config["models"]["providers"]["anthropic"]["apiKey"] == "sk-a"
