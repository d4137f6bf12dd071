"""Pydantic settings for Sync Failure Tracker Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.config import GuardSettings, resolve_component_settings
from services.state.sync_failure_tracker.component import SERVICE_COMPONENT_ID


class SyncFailureTrackerSettings(BaseModel):
    """Alert threshold and status file location."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    failure_threshold: int = Field(default=3, gt=0)
    status_filename: str = Field(default=".sync-status.json", min_length=1)


def resolve_sync_failure_tracker_settings(
    settings: GuardSettings,
) -> SyncFailureTrackerSettings:
    """Resolve tracker settings from ``service.sync_failure_tracker``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=SyncFailureTrackerSettings,
    )
