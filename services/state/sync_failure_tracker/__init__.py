"""Sync Failure Tracker Service native package exports."""

from services.state.sync_failure_tracker.component import (
    MANIFEST,
    SERVICE_COMPONENT_ID,
)
from services.state.sync_failure_tracker.config import SyncFailureTrackerSettings
from services.state.sync_failure_tracker.domain import (
    FailureOutcome,
    HealthStatus,
    SyncFailureAlert,
    SyncStatus,
)
from services.state.sync_failure_tracker.implementation import (
    DefaultSyncFailureTrackerService,
)
from services.state.sync_failure_tracker.service import (
    SyncFailureTrackerService,
    build_sync_failure_tracker_service,
)

__all__ = [
    "MANIFEST",
    "SERVICE_COMPONENT_ID",
    "DefaultSyncFailureTrackerService",
    "FailureOutcome",
    "HealthStatus",
    "SyncFailureAlert",
    "SyncFailureTrackerService",
    "SyncFailureTrackerSettings",
    "SyncStatus",
    "build_sync_failure_tracker_service",
]
