"""Pydantic settings for Snapshot Store Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.config import GuardSettings, resolve_component_settings
from services.state.snapshot_store.component import SERVICE_COMPONENT_ID


class SnapshotStoreSettings(BaseModel):
    """Snapshot retention and layout settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_snapshots: int = Field(default=10, gt=0)
    pre_restore_snapshot: bool = True
    snapshots_dirname: str = Field(default="snapshots", min_length=1)
    index_filename: str = Field(default="index.json", min_length=1)
    metadata_filename: str = Field(default="metadata.json", min_length=1)


def resolve_snapshot_store_settings(settings: GuardSettings) -> SnapshotStoreSettings:
    """Resolve snapshot store settings from ``service.snapshot_store``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=SnapshotStoreSettings,
    )
