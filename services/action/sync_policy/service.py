"""Authoritative in-process Python API for Sync Policy Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.envelope import Envelope, EnvelopeMeta
from resources.substrates.durable_store import DurableStoreSubstrate
from resources.substrates.workspace import WorkspaceSubstrate
from services.action.notification_hub.service import NotificationHubService
from services.action.sync_policy.domain import (
    ConflictAlert,
    CriticalAlert,
    HealthStatus,
    PolicyStatus,
    ProtectionOutcome,
    RepairResult,
    SyncDecision,
    SyncResult,
    WorkspaceHealthReport,
)
from services.state.snapshot_store.service import SnapshotStoreService
from services.state.sync_failure_tracker.service import SyncFailureTrackerService


class SyncPolicyService(ABC):
    """Public API for guarding live-to-backup syncs against data loss."""

    @abstractmethod
    async def validate(self, *, meta: EnvelopeMeta) -> Envelope[SyncDecision]:
        """Score live and backup state and decide allow, warn, or block."""

    @abstractmethod
    async def handle_dangerous(
        self, *, meta: EnvelopeMeta, decision: SyncDecision
    ) -> Envelope[ProtectionOutcome]:
        """Snapshot, record an alert, and report whether the sync is blocked."""

    @abstractmethod
    async def sync(
        self,
        *,
        meta: EnvelopeMeta,
        force: bool = False,
        skip_validation: bool = False,
    ) -> Envelope[SyncResult]:
        """Validate and, unless blocked, mirror live state into the backup."""

    @abstractmethod
    async def list_alerts(
        self, *, meta: EnvelopeMeta, include_resolved: bool = False
    ) -> Envelope[list[ConflictAlert]]:
        """List recorded conflict alerts, most recent first."""

    @abstractmethod
    async def resolve_alert(
        self,
        *,
        meta: EnvelopeMeta,
        alert_id: str,
        resolved_by: Literal["user", "auto"] = "user",
    ) -> Envelope[ConflictAlert]:
        """Mark one conflict alert resolved."""

    @abstractmethod
    async def status(self, *, meta: EnvelopeMeta) -> Envelope[PolicyStatus]:
        """Return current scores, sync safety, and alert bookkeeping."""

    @abstractmethod
    async def diagnose(self, *, meta: EnvelopeMeta) -> Envelope[WorkspaceHealthReport]:
        """Diagnose the live workspace and the durable store behind it."""

    @abstractmethod
    async def critical_alerts(
        self, *, meta: EnvelopeMeta
    ) -> Envelope[list[CriticalAlert]]:
        """List setup gaps that keep the assistant from working."""

    @abstractmethod
    async def repair(self, *, meta: EnvelopeMeta) -> Envelope[RepairResult]:
        """Apply automatic fixes for repairable issues, then diagnose again."""

    @abstractmethod
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return sync policy and substrate readiness."""


def build_sync_policy_service(
    *,
    settings: GuardSettings,
    durable_store: DurableStoreSubstrate | None = None,
    workspace: WorkspaceSubstrate | None = None,
    snapshot_store: SnapshotStoreService | None = None,
    failure_tracker: SyncFailureTrackerService | None = None,
    notification_hub: NotificationHubService | None = None,
) -> SyncPolicyService:
    """Build default Sync Policy implementation from typed settings.

    The failure tracker and notification hub are optional collaborators; sync
    outcomes are only recorded and announced when they are wired in.
    """
    from resources.substrates.durable_store import (
        LocalDurableStoreSubstrate,
        resolve_durable_store_settings,
    )
    from resources.substrates.workspace import (
        LocalWorkspaceSubstrate,
        resolve_workspace_settings,
    )
    from services.action.sync_policy.config import resolve_sync_policy_settings
    from services.action.sync_policy.implementation import DefaultSyncPolicyService
    from services.state.snapshot_store.service import build_snapshot_store_service

    durable_store = durable_store or LocalDurableStoreSubstrate(
        settings=resolve_durable_store_settings(settings)
    )
    workspace = workspace or LocalWorkspaceSubstrate(
        settings=resolve_workspace_settings(settings)
    )
    return DefaultSyncPolicyService(
        settings=resolve_sync_policy_settings(settings),
        durable_store=durable_store,
        workspace=workspace,
        snapshot_store=snapshot_store
        or build_snapshot_store_service(
            settings=settings, durable_store=durable_store, workspace=workspace
        ),
        failure_tracker=failure_tracker,
        notification_hub=notification_hub,
    )
