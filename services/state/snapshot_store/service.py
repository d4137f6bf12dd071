"""Authoritative in-process Python API for Snapshot Store Service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.envelope import Envelope, EnvelopeMeta
from resources.substrates.durable_store import DurableStoreSubstrate
from resources.substrates.workspace import WorkspaceSubstrate
from services.state.snapshot_store.domain import (
    HealthStatus,
    RestoreResult,
    SnapshotComparison,
    SnapshotContent,
    SnapshotIndex,
    SnapshotMetadata,
    SnapshotTrigger,
)


class SnapshotStoreService(ABC):
    """Public API for versioned point-in-time copies of the live state."""

    @abstractmethod
    async def create(
        self,
        *,
        meta: EnvelopeMeta,
        trigger: SnapshotTrigger = SnapshotTrigger.MANUAL,
        description: str | None = None,
    ) -> Envelope[SnapshotMetadata]:
        """Capture every tracked group into a new snapshot."""

    @abstractmethod
    async def list_snapshots(
        self, *, meta: EnvelopeMeta
    ) -> Envelope[list[SnapshotMetadata]]:
        """List retained snapshots, newest first."""

    @abstractmethod
    async def get_index(self, *, meta: EnvelopeMeta) -> Envelope[SnapshotIndex]:
        """Return the full snapshot index document."""

    @abstractmethod
    async def get_snapshot(
        self, *, meta: EnvelopeMeta, snapshot_id: str
    ) -> Envelope[SnapshotContent]:
        """Return one snapshot's metadata, configuration text, and skill names."""

    @abstractmethod
    async def restore(
        self, *, meta: EnvelopeMeta, snapshot_id: str
    ) -> Envelope[RestoreResult]:
        """Replace every live tracked group with one snapshot's copy."""

    @abstractmethod
    async def delete(
        self, *, meta: EnvelopeMeta, snapshot_id: str
    ) -> Envelope[SnapshotMetadata]:
        """Remove one snapshot from the index and the store."""

    @abstractmethod
    async def compare(
        self,
        *,
        meta: EnvelopeMeta,
        snapshot_id: str,
        compare_to: str | None = None,
    ) -> Envelope[SnapshotComparison]:
        """Compare one snapshot against another snapshot or the live state."""

    @abstractmethod
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return snapshot store and substrate readiness."""


def build_snapshot_store_service(
    *,
    settings: GuardSettings,
    durable_store: DurableStoreSubstrate | None = None,
    workspace: WorkspaceSubstrate | None = None,
) -> SnapshotStoreService:
    """Build default Snapshot Store implementation from typed settings."""
    from resources.substrates.durable_store import (
        LocalDurableStoreSubstrate,
        resolve_durable_store_settings,
    )
    from resources.substrates.workspace import (
        LocalWorkspaceSubstrate,
        resolve_workspace_settings,
    )
    from services.state.snapshot_store.config import resolve_snapshot_store_settings
    from services.state.snapshot_store.implementation import (
        DefaultSnapshotStoreService,
    )

    return DefaultSnapshotStoreService(
        settings=resolve_snapshot_store_settings(settings),
        durable_store=durable_store
        or LocalDurableStoreSubstrate(
            settings=resolve_durable_store_settings(settings)
        ),
        workspace=workspace
        or LocalWorkspaceSubstrate(settings=resolve_workspace_settings(settings)),
    )
