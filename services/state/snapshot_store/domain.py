"""Domain contracts for Snapshot Store Service payloads."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.json_models import PersistedModel
from services.state.snapshot_store.completeness import CompletenessScore

SNAPSHOT_ID_PREFIX = "snap"

SNAPSHOT_NOT_FOUND = "SNAPSHOT_NOT_FOUND"
SNAPSHOT_INDEX_CORRUPT = "SNAPSHOT_INDEX_CORRUPT"


class SnapshotTrigger(str, Enum):
    """Reason a snapshot was taken."""

    MANUAL = "manual"
    AUTO = "auto"
    PRE_EVOLUTION = "pre-evolution"
    PRE_SYNC = "pre-sync"
    PRE_RESTORE = "pre-restore"
    AUTO_PROTECTION = "auto-protection"


class SnapshotFiles(PersistedModel):
    """Item counts captured per tracked group."""

    has_config: bool = False
    skills_count: int = 0
    conversations_count: int = 0
    devices_count: int = 0
    data_count: int = 0


class SnapshotSizes(PersistedModel):
    """Byte sizes captured per tracked group."""

    config_size: int = 0
    skills_size: int = 0
    conversations_size: int = 0
    devices_size: int = 0
    data_size: int = 0


class SnapshotMetadata(PersistedModel):
    """Metadata document stored beside every snapshot."""

    id: str
    timestamp: datetime
    description: str
    trigger: SnapshotTrigger
    version: int = Field(gt=0)
    files: SnapshotFiles
    metadata: SnapshotSizes
    completeness_score: CompletenessScore | None = None


class SnapshotIndex(PersistedModel):
    """Index of retained snapshots, newest first."""

    snapshots: tuple[SnapshotMetadata, ...] = ()
    current_version: int = Field(default=0, ge=0)
    max_snapshots: int = Field(default=10, gt=0)


class SnapshotContent(BaseModel):
    """One snapshot's metadata plus its captured configuration and skills."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    metadata: SnapshotMetadata
    config_text: str | None
    skills: tuple[str, ...]


class SnapshotComparison(PersistedModel):
    """Difference between a snapshot and another snapshot or the live state."""

    snapshot_id: str
    compare_to: str
    config_changed: bool
    config_diff: str | None = None
    skills_added: tuple[str, ...] = ()
    skills_removed: tuple[str, ...] = ()


class RestoreResult(BaseModel):
    """Outcome of restoring one snapshot into the live state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    restored: SnapshotMetadata
    pre_restore_snapshot_id: str | None


class HealthStatus(BaseModel):
    """Snapshot store and substrate readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    durable_store_ready: bool
    workspace_ready: bool
    detail: str
