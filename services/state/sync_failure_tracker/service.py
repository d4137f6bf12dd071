"""Authoritative in-process Python API for Sync Failure Tracker Service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.envelope import Envelope, EnvelopeMeta
from resources.substrates.durable_store import DurableStoreSubstrate
from services.state.sync_failure_tracker.domain import (
    FailureOutcome,
    HealthStatus,
    SyncFailureAlert,
    SyncStatus,
)


class SyncFailureTrackerService(ABC):
    """Public API for counting consecutive sync failures across restarts."""

    @abstractmethod
    async def record_failure(
        self, *, meta: EnvelopeMeta, error: str
    ) -> Envelope[FailureOutcome]:
        """Count one failure and report whether an alert is now due."""

    @abstractmethod
    async def record_success(self, *, meta: EnvelopeMeta) -> Envelope[SyncStatus]:
        """Reset the failure counter after a successful sync."""

    @abstractmethod
    async def status(self, *, meta: EnvelopeMeta) -> Envelope[SyncStatus]:
        """Return the persisted sync status."""

    @abstractmethod
    async def emit_alert(
        self,
        *,
        meta: EnvelopeMeta,
        consecutive_failures: int,
        last_error: str,
    ) -> Envelope[SyncFailureAlert]:
        """Emit one critical structured alert log line."""

    @abstractmethod
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return tracker and durable store readiness."""


def build_sync_failure_tracker_service(
    *,
    settings: GuardSettings,
    durable_store: DurableStoreSubstrate | None = None,
) -> SyncFailureTrackerService:
    """Build default tracker implementation from typed settings."""
    from resources.substrates.durable_store import (
        LocalDurableStoreSubstrate,
        resolve_durable_store_settings,
    )
    from services.state.sync_failure_tracker.config import (
        resolve_sync_failure_tracker_settings,
    )
    from services.state.sync_failure_tracker.implementation import (
        DefaultSyncFailureTrackerService,
    )

    return DefaultSyncFailureTrackerService(
        settings=resolve_sync_failure_tracker_settings(settings),
        durable_store=durable_store
        or LocalDurableStoreSubstrate(
            settings=resolve_durable_store_settings(settings)
        ),
    )
