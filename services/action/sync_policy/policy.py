"""Pure decision logic for reconciling live state with the durable backup.

Rules are evaluated in a fixed priority order and the first match wins, so an
emptied channel list is always reported as a block even when other rules would
also fire.
"""

from __future__ import annotations

import copy
from typing import Any, Mapping, Sequence

from services.action.sync_policy.config import SyncPolicySettings
from services.action.sync_policy.domain import (
    CHANNEL_LABEL_PREFIX,
    LOSS_API_KEYS,
    LOSS_CONVERSATIONS,
    LOSS_DEVICES,
    AlertSeverity,
    ConflictAlertType,
    DecisionRule,
    SyncAction,
    SyncDecision,
    SyncDiff,
)
from services.state.snapshot_store.completeness import CompletenessScore

_SUGGESTIONS = {
    SyncAction.BLOCK: (
        "Restore the configuration from the backup, or confirm this reset is intended"
    ),
    SyncAction.WARN: "Review the configuration differences before continuing the sync",
}

_LOSS_ALERT_TYPES = {
    LOSS_API_KEYS: ConflictAlertType.API_KEY_LOST,
    LOSS_CONVERSATIONS: ConflictAlertType.CONVERSATION_LOST,
    LOSS_DEVICES: ConflictAlertType.DEVICE_LOST,
}


def compute_diff(
    local_config: object,
    remote_config: object,
    local_score: CompletenessScore,
    remote_score: CompletenessScore,
) -> SyncDiff:
    """List channels and categories a sync would lose, keep, or add."""
    will_lose: list[str] = []
    will_keep: list[str] = []
    will_add: list[str] = []

    local_channels = _channels(local_config)
    remote_channels = _channels(remote_config)
    for name, value in remote_channels.items():
        label = f"{CHANNEL_LABEL_PREFIX}{name}"
        if _truthy(local_channels.get(name)):
            will_keep.append(label)
        else:
            will_lose.append(label)
    for name in local_channels:
        if not _truthy(remote_channels.get(name)):
            will_add.append(f"{CHANNEL_LABEL_PREFIX}{name}")

    local = local_score.breakdown
    remote = remote_score.breakdown
    if remote.has_api_keys and not local.has_api_keys:
        will_lose.append(LOSS_API_KEYS)
    elif remote.has_api_keys:
        will_keep.append(LOSS_API_KEYS)
    elif local.has_api_keys:
        will_add.append(LOSS_API_KEYS)

    for label, remote_has, local_has in (
        (LOSS_CONVERSATIONS, remote.has_conversations, local.has_conversations),
        (LOSS_DEVICES, remote.has_devices, local.has_devices),
    ):
        if remote_has and not local_has:
            will_lose.append(label)
        elif remote_has:
            will_keep.append(label)

    return SyncDiff(
        will_lose=tuple(will_lose), will_keep=tuple(will_keep), will_add=tuple(will_add)
    )


def decide(
    *,
    local_config: object,
    remote_config: object,
    local_score: CompletenessScore,
    remote_score: CompletenessScore,
    settings: SyncPolicySettings,
) -> SyncDecision:
    """Return the first matching allow/warn/block verdict."""
    diff = compute_diff(local_config, remote_config, local_score, remote_score)
    local = local_score.score
    remote = remote_score.score
    gap = local - remote

    if not local_score.breakdown.has_channels and remote_score.breakdown.has_channels:
        action, rule = SyncAction.BLOCK, DecisionRule.CHANNELS_EMPTIED
        reason = (
            "Local configuration has no channels but the backup does; "
            "syncing would erase them"
        )
    elif gap < -settings.blocking_score_diff:
        action, rule = SyncAction.BLOCK, DecisionRule.SCORE_COLLAPSE
        reason = (
            f"Local completeness ({local}) is far below the backup ({remote}), "
            f"a gap of {-gap} points"
        )
    elif gap < -settings.warning_score_diff:
        action, rule = SyncAction.WARN, DecisionRule.SCORE_REGRESSION
        reason = f"Local completeness ({local}) is below the backup ({remote})"
    elif local < settings.min_score_to_sync and remote > local:
        action, rule = SyncAction.WARN, DecisionRule.BELOW_MINIMUM
        reason = (
            f"Local completeness ({local}) is below the minimum of "
            f"{settings.min_score_to_sync}"
        )
    elif diff.will_lose:
        action, rule = SyncAction.WARN, DecisionRule.DATA_LOSS
        reason = f"Sync would lose: {', '.join(diff.will_lose)}"
    else:
        action, rule = SyncAction.ALLOW, DecisionRule.CLEAN
        reason = "Configuration completeness is normal"

    return SyncDecision(
        action=action,
        reason=reason,
        rule=rule,
        requires_confirmation=action is not SyncAction.ALLOW,
        local_score=local_score,
        remote_score=remote_score,
        diff=diff,
    )


def is_sync_safe(
    local_score: CompletenessScore,
    remote_score: CompletenessScore,
    settings: SyncPolicySettings,
) -> bool:
    """Quick status check: no large regression and no emptied channel list."""
    gap = local_score.score - remote_score.score
    return (
        gap >= -settings.warning_score_diff and bool(local_score.breakdown.has_channels)
    ) or not remote_score.breakdown.has_channels


def alert_type_for(decision: SyncDecision) -> ConflictAlertType:
    """Map the matched rule onto a conflict alert category."""
    if decision.rule is DecisionRule.CHANNELS_EMPTIED:
        return ConflictAlertType.EMPTY_OVERWRITES_FULL
    if decision.rule is DecisionRule.DATA_LOSS and decision.diff.will_lose:
        first = decision.diff.will_lose[0]
        if first.startswith(CHANNEL_LABEL_PREFIX):
            return ConflictAlertType.CHANNEL_LOST
        return _LOSS_ALERT_TYPES.get(first, ConflictAlertType.CONFIG_REGRESSION)
    return ConflictAlertType.CONFIG_REGRESSION


def alert_severity_for(decision: SyncDecision) -> AlertSeverity:
    if decision.action is SyncAction.BLOCK:
        return AlertSeverity.CRITICAL
    return AlertSeverity.WARNING


def suggested_action_for(decision: SyncDecision) -> str:
    return _SUGGESTIONS.get(decision.action, _SUGGESTIONS[SyncAction.WARN])


def strip_fields(
    config: Mapping[str, Any], dotted_fields: Sequence[str]
) -> tuple[dict[str, Any], list[str]]:
    """Return a copy of ``config`` without the named fields, plus those removed."""
    stripped = copy.deepcopy(dict(config))
    removed: list[str] = []
    for dotted in dotted_fields:
        *parents, leaf = dotted.split(".")
        current: object = stripped
        for part in parents:
            current = current.get(part) if isinstance(current, dict) else None
        if isinstance(current, dict) and leaf in current:
            del current[leaf]
            removed.append(dotted)
    return stripped, removed


def _channels(config: object) -> Mapping[str, Any]:
    if not isinstance(config, Mapping):
        return {}
    channels = config.get("channels")
    return channels if isinstance(channels, Mapping) else {}


def _truthy(value: object) -> bool:
    """Presence test for channel entries; empty mappings still count."""
    if value is None or value is False or value == "":
        return False
    return not (isinstance(value, (int, float)) and value == 0)
