"""Snapshot Store Service native package exports."""

from packages.guard_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta
from packages.guard_shared.errors import ErrorCategory, ErrorDetail
from services.state.snapshot_store.completeness import (
    CompletenessBreakdown,
    CompletenessScore,
    StateStats,
    channel_names,
    parse_config_text,
    score_completeness,
)
from services.state.snapshot_store.component import MANIFEST, SERVICE_COMPONENT_ID
from services.state.snapshot_store.config import SnapshotStoreSettings
from services.state.snapshot_store.domain import (
    SNAPSHOT_NOT_FOUND,
    HealthStatus,
    RestoreResult,
    SnapshotComparison,
    SnapshotContent,
    SnapshotFiles,
    SnapshotIndex,
    SnapshotMetadata,
    SnapshotSizes,
    SnapshotTrigger,
)
from services.state.snapshot_store.implementation import DefaultSnapshotStoreService
from services.state.snapshot_store.service import (
    SnapshotStoreService,
    build_snapshot_store_service,
)

__all__ = [
    "MANIFEST",
    "SERVICE_COMPONENT_ID",
    "SNAPSHOT_NOT_FOUND",
    "CompletenessBreakdown",
    "CompletenessScore",
    "DefaultSnapshotStoreService",
    "HealthStatus",
    "RestoreResult",
    "SnapshotComparison",
    "SnapshotContent",
    "SnapshotFiles",
    "SnapshotIndex",
    "SnapshotMetadata",
    "SnapshotSizes",
    "SnapshotStoreService",
    "SnapshotStoreSettings",
    "SnapshotTrigger",
    "StateStats",
    "build_snapshot_store_service",
    "channel_names",
    "parse_config_text",
    "score_completeness",
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "ErrorCategory",
    "ErrorDetail",
]
