"""Structural diffing and risk tiering for configuration changes.

Configuration trees are walked recursively with a tuple path accumulator. Each
change is tiered by ordered path rules; an added or removed subtree is tiered by
the riskiest path inside it so nested credentials are never under-reported.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Callable, Iterator, Mapping, Sequence

from pydantic import field_serializer, field_validator, model_validator

from packages.guard_shared.json_models import PersistedModel

Path = tuple[str, ...]

_MAJOR_SECTIONS = frozenset({"models", "gateway", "channels", "agents"})
_PREVIEW_CHARS = 50


class ChangeType(str, Enum):
    """Kind of structural change at one path."""

    ADD = "add"
    MODIFY = "modify"
    DELETE = "delete"


class RiskTier(str, Enum):
    """Risk tier, ordered safe < medium < high."""

    SAFE = "safe"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {RiskTier.SAFE: 0, RiskTier.MEDIUM: 1, RiskTier.HIGH: 2}


class ConfigChange(PersistedModel):
    """One changed path; the absent side of an add or delete is ``None``."""

    path: Path
    old_value: Any = None
    new_value: Any = None
    change_type: ChangeType

    @field_validator("path", mode="before")
    @classmethod
    def _split_dotted(cls, value: object) -> object:
        """Accept the dotted rendering used on the wire."""
        if isinstance(value, str):
            return tuple(value.split("."))
        return value

    @field_serializer("path")
    def _render_path(self, path: Path) -> str:
        return dotted(path)

    @property
    def dotted_path(self) -> str:
        return dotted(self.path)


class RiskAssessment(PersistedModel):
    """Tier and reason assigned to one changed path."""

    path: str
    tier: RiskTier
    reason: str


class RiskAnalysis(PersistedModel):
    """Every change between two trees with its tier and an overall verdict."""

    overall_risk: RiskTier
    changes: tuple[ConfigChange, ...] = ()
    risks: tuple[RiskAssessment, ...] = ()
    summary: str
    requires_confirmation: bool

    @model_validator(mode="after")
    def _overall_is_maximum(self) -> "RiskAnalysis":
        """Enforce the overall tier and confirmation flag against the risks."""
        expected = max_tier(risk.tier for risk in self.risks)
        if self.overall_risk is not expected:
            raise ValueError("overall_risk must be the maximum tier over risks")
        if self.requires_confirmation != (expected is not RiskTier.SAFE):
            raise ValueError("requires_confirmation must be set iff risk is not safe")
        return self


_Rule = tuple[Callable[[Path], bool], RiskTier, str]


def _under(*parents: str, stem: str = "") -> Callable[[Path], bool]:
    """Match paths below ``parents`` whose next segment starts with ``stem``."""
    depth = len(parents)

    def matches(path: Path) -> bool:
        return (
            len(path) > depth
            and path[:depth] == parents
            and path[depth].startswith(stem)
        )

    return matches


def _leaf_suffix(suffix: str) -> Callable[[Path], bool]:
    lowered = suffix.lower()

    def matches(path: Path) -> bool:
        return bool(path) and path[-1].lower().endswith(lowered)

    return matches


_RULES: tuple[_Rule, ...] = (
    (
        _under("models", "providers"),
        RiskTier.HIGH,
        "Modifying AI provider configuration can break model access",
    ),
    (
        _under("gateway", stem="auth"),
        RiskTier.HIGH,
        "Authentication changes can lock out users",
    ),
    (
        _under("gateway", stem="token"),
        RiskTier.HIGH,
        "Token changes can lock out clients",
    ),
    (
        _leaf_suffix("apiKey"),
        RiskTier.HIGH,
        "API key changes can break external service access",
    ),
    (
        _leaf_suffix("baseUrl"),
        RiskTier.HIGH,
        "Endpoint changes can route requests to wrong servers",
    ),
    (
        _under("gateway"),
        RiskTier.MEDIUM,
        "Gateway configuration affects all connections",
    ),
    (
        _under("channels"),
        RiskTier.MEDIUM,
        "Channel changes affect messaging integrations",
    ),
    (
        _under("agents", "defaults", stem="model"),
        RiskTier.MEDIUM,
        "Default model changes affect AI behavior",
    ),
    (
        _under("agents", "defaults", stem="workspace"),
        RiskTier.SAFE,
        "Workspace path change",
    ),
    (
        _under("agents", "defaults"),
        RiskTier.SAFE,
        "Agent default setting change",
    ),
)


def dotted(path: Sequence[str]) -> str:
    """Render a path tuple in dotted form."""
    return ".".join(path)


def max_tier(tiers: Iterator[RiskTier] | Sequence[RiskTier]) -> RiskTier:
    """Return the highest tier, ``safe`` for no tiers."""
    highest = RiskTier.SAFE
    for tier in tiers:
        if tier.rank > highest.rank:
            highest = tier
    return highest


def detect_changes(
    old: Mapping[str, Any], new: Mapping[str, Any]
) -> list[ConfigChange]:
    """Return every structural change turning ``old`` into ``new``."""
    changes: list[ConfigChange] = []
    _walk(old, new, (), changes)
    return changes


def _walk(
    old: Mapping[str, Any],
    new: Mapping[str, Any],
    prefix: Path,
    changes: list[ConfigChange],
) -> None:
    for key, new_value in new.items():
        path = prefix + (str(key),)
        if key not in old:
            changes.append(
                ConfigChange(path=path, new_value=new_value, change_type=ChangeType.ADD)
            )
            continue
        old_value = old[key]
        if isinstance(old_value, Mapping) and isinstance(new_value, Mapping):
            _walk(old_value, new_value, path, changes)
        elif not _same(old_value, new_value):
            changes.append(
                ConfigChange(
                    path=path,
                    old_value=old_value,
                    new_value=new_value,
                    change_type=ChangeType.MODIFY,
                )
            )
    for key, old_value in old.items():
        if key not in new:
            changes.append(
                ConfigChange(
                    path=prefix + (str(key),),
                    old_value=old_value,
                    change_type=ChangeType.DELETE,
                )
            )


def _same(left: object, right: object) -> bool:
    """Structural equality that keeps ``true`` distinct from ``1``."""
    return _canonical(left) == _canonical(right)


def _canonical(value: object) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def classify(path: Sequence[str], change_type: ChangeType) -> RiskAssessment:
    """Tier one changed path by the first matching rule."""
    path = tuple(path)
    if (
        ChangeType(change_type) is ChangeType.DELETE
        and len(path) == 1
        and path[0] in _MAJOR_SECTIONS
    ):
        return RiskAssessment(
            path=dotted(path),
            tier=RiskTier.HIGH,
            reason=f"Deleting entire {path[0]} section",
        )
    for matches, tier, reason in _RULES:
        if matches(path):
            return RiskAssessment(path=dotted(path), tier=tier, reason=reason)
    return RiskAssessment(
        path=dotted(path), tier=RiskTier.SAFE, reason="Standard configuration change"
    )


def assess_change(change: ConfigChange) -> RiskAssessment:
    """Tier one change at the riskiest path it touches."""
    assessment = classify(change.path, change.change_type)
    if change.change_type is ChangeType.MODIFY:
        return assessment
    moved = change.new_value if change.change_type is ChangeType.ADD else change.old_value
    for inner in _subtree_paths(moved, change.path):
        candidate = classify(inner, change.change_type)
        if candidate.tier.rank > assessment.tier.rank:
            assessment = RiskAssessment(
                path=change.dotted_path, tier=candidate.tier, reason=candidate.reason
            )
    return assessment


def _subtree_paths(value: object, prefix: Path) -> Iterator[Path]:
    if not isinstance(value, Mapping):
        return
    for key, item in value.items():
        path = prefix + (str(key),)
        yield path
        yield from _subtree_paths(item, path)


def analyze_risk(old: Mapping[str, Any], new: Mapping[str, Any]) -> RiskAnalysis:
    """Diff two trees and tier every change."""
    changes = detect_changes(old, new)
    if not changes:
        return RiskAnalysis(
            overall_risk=RiskTier.SAFE,
            summary="No changes detected",
            requires_confirmation=False,
        )
    risks = tuple(assess_change(change) for change in changes)
    overall = max_tier(risk.tier for risk in risks)
    counts = {tier: sum(1 for risk in risks if risk.tier is tier) for tier in RiskTier}
    parts = [
        f"{counts[tier]} {label}"
        for tier, label in (
            (RiskTier.HIGH, "high-risk"),
            (RiskTier.MEDIUM, "medium-risk"),
            (RiskTier.SAFE, "safe"),
        )
        if counts[tier]
    ]
    return RiskAnalysis(
        overall_risk=overall,
        changes=tuple(changes),
        risks=risks,
        summary=f"{len(changes)} change(s): {', '.join(parts)}",
        requires_confirmation=overall is not RiskTier.SAFE,
    )


def describe_change(change: ConfigChange) -> str:
    """Return one human sentence for a change."""
    if change.change_type is ChangeType.ADD:
        return f"Added {change.dotted_path}"
    if change.change_type is ChangeType.DELETE:
        return f"Removed {change.dotted_path}"
    return (
        f"Changed {change.dotted_path}: "
        f"{_preview(change.old_value)} -> {_preview(change.new_value)}"
    )


def _preview(value: object) -> str:
    text = _compact(value)
    if len(text) > _PREVIEW_CHARS:
        return text[: _PREVIEW_CHARS - 3] + "..."
    return text


def _compact(value: object) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


def render_diff(changes: Sequence[ConfigChange]) -> str:
    """Render changes as ``+``/``-`` lines."""
    lines: list[str] = []
    for change in changes:
        if change.change_type is not ChangeType.ADD:
            lines.append(f"- {change.dotted_path}: {_compact(change.old_value)}")
        if change.change_type is not ChangeType.DELETE:
            lines.append(f"+ {change.dotted_path}: {_compact(change.new_value)}")
    return "\n".join(lines)
