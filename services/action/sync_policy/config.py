"""Pydantic settings for Sync Policy Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.config import GuardSettings, resolve_component_settings
from services.action.sync_policy.component import SERVICE_COMPONENT_ID

DEFAULT_ENV_ONLY_FIELDS = (
    "models.providers.anthropic.apiKey",
    "models.providers.openai.apiKey",
)


class SyncPolicySettings(BaseModel):
    """Thresholds, protection switches, and backup layout for syncs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = True
    min_score_to_sync: int = Field(default=40, ge=0, le=100)
    warning_score_diff: int = Field(default=10, ge=0, le=100)
    blocking_score_diff: int = Field(default=20, ge=0, le=100)
    auto_snapshot_on_danger: bool = True
    auto_block_empty_sync: bool = True
    max_alerts: int = Field(default=50, gt=0)
    env_only_fields: tuple[str, ...] = DEFAULT_ENV_ONLY_FIELDS
    sync_exclude: tuple[str, ...] = ("*.lock", "*.log", "*.tmp")
    backup_dirname: str = Field(default="clawdbot", min_length=1)
    skills_dirname: str = Field(default="skills", min_length=1)
    last_sync_filename: str = Field(default=".last-sync", min_length=1)
    alerts_filename: str = Field(default="conflict-alerts.json", min_length=1)
    repair_gateway_port: int = Field(default=18789, gt=0, le=65535)
    repair_gateway_mode: str = Field(default="local", min_length=1)


def resolve_sync_policy_settings(settings: GuardSettings) -> SyncPolicySettings:
    """Resolve sync policy settings from ``service.sync_policy``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=SyncPolicySettings,
    )
