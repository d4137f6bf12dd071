"""Completeness scoring for configuration state.

A score is the sum of five presence checks worth 20 points each. Scoring never
raises: absent or malformed configuration is a valid state that scores zero on
every configuration-derived category.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from pydantic import Field, model_validator

from packages.guard_shared.json_models import PersistedModel

CATEGORY_POINTS = 20
_CREDENTIAL_ROOTS: tuple[tuple[str, ...], ...] = (("models", "providers"), ("tools",))

_WARNINGS = {
    "has_config": "Configuration file is missing, empty, or unreadable",
    "has_channels": "No messaging channels are configured",
    "has_api_keys": "No provider or search credentials are configured",
    "has_devices": "No paired devices found",
    "has_conversations": "No conversation history found",
}


class StateStats(PersistedModel):
    """Counts of non-configuration state used by scoring."""

    devices_count: int = Field(default=0, ge=0)
    conversations_count: int = Field(default=0, ge=0)


class CompletenessBreakdown(PersistedModel):
    """Per-category points, each either 0 or ``CATEGORY_POINTS``."""

    has_config: int = 0
    has_channels: int = 0
    has_api_keys: int = 0
    has_devices: int = 0
    has_conversations: int = 0

    @model_validator(mode="after")
    def _points_are_binary(self) -> "CompletenessBreakdown":
        """Reject partial category scores."""
        for name, value in self.model_dump().items():
            if value not in (0, CATEGORY_POINTS):
                raise ValueError(f"{name} must be 0 or {CATEGORY_POINTS}")
        return self

    def total(self) -> int:
        """Return the sum of all category points."""
        return sum(self.model_dump().values())


class CompletenessScore(PersistedModel):
    """Completeness score with breakdown and warnings for missing categories."""

    score: int = Field(ge=0, le=100)
    breakdown: CompletenessBreakdown
    warnings: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _score_matches_breakdown(self) -> "CompletenessScore":
        """Enforce ``score == sum(breakdown)``."""
        if self.score != self.breakdown.total():
            raise ValueError("score must equal the sum of the breakdown")
        return self


def parse_config_text(text: str | None) -> dict[str, Any] | None:
    """Parse configuration JSON text; ``None`` when absent or not a JSON object."""
    if text is None or not text.strip():
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def score_completeness(
    config: object, stats: StateStats | None = None
) -> CompletenessScore:
    """Score one configuration snapshot across the five presence categories."""
    stats = stats or StateStats()
    checks = {
        "has_config": isinstance(config, Mapping) and len(config) > 0,
        "has_channels": _non_empty_mapping(_lookup(config, ("channels",))),
        "has_api_keys": any(
            _contains_credential(_lookup(config, root)) for root in _CREDENTIAL_ROOTS
        ),
        "has_devices": stats.devices_count > 0,
        "has_conversations": stats.conversations_count > 0,
    }
    breakdown = CompletenessBreakdown(
        **{name: CATEGORY_POINTS if passed else 0 for name, passed in checks.items()}
    )
    return CompletenessScore(
        score=breakdown.total(),
        breakdown=breakdown,
        warnings=tuple(_WARNINGS[name] for name, passed in checks.items() if not passed),
    )


def channel_names(config: object) -> list[str]:
    """Return the configured channel keys, in document order."""
    channels = _lookup(config, ("channels",))
    return list(channels) if isinstance(channels, Mapping) else []


def _lookup(config: object, path: tuple[str, ...]) -> object:
    """Follow one key path through nested mappings; ``None`` when absent."""
    current = config
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _non_empty_mapping(value: object) -> bool:
    return isinstance(value, Mapping) and len(value) > 0


def _contains_credential(value: object) -> bool:
    """Return whether any nested ``*apiKey`` entry holds a non-empty string."""
    if isinstance(value, Mapping):
        for key, item in value.items():
            if (
                isinstance(key, str)
                and key.lower().endswith("apikey")
                and isinstance(item, str)
                and item.strip()
            ):
                return True
            if _contains_credential(item):
                return True
    elif isinstance(value, list):
        return any(_contains_credential(item) for item in value)
    return False
