"""Authoritative in-process Python API for Evolution Workflow Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.envelope import Envelope, EnvelopeMeta
from resources.substrates.workspace import WorkspaceSubstrate
from services.action.evolution_workflow.domain import (
    EvolutionPreview,
    EvolutionRequest,
    HealthStatus,
)
from services.action.notification_hub.domain import NotificationSource
from services.action.notification_hub.service import NotificationHubService
from services.state.snapshot_store.service import SnapshotStoreService


class EvolutionWorkflowService(ABC):
    """Public API for driving proposed configuration changes to a disposition."""

    @abstractmethod
    async def create_request(
        self,
        *,
        meta: EnvelopeMeta,
        proposed: Mapping[str, Any],
        source: NotificationSource | None = None,
        reason: str | None = None,
        auto_approve_if_safe: bool = False,
    ) -> Envelope[EvolutionRequest]:
        """Analyze a proposed configuration and apply it or queue it for approval."""

    @abstractmethod
    async def approve(
        self,
        *,
        meta: EnvelopeMeta,
        request_id: str,
        source: NotificationSource | None = None,
    ) -> Envelope[EvolutionRequest]:
        """Approve one pending request."""

    @abstractmethod
    async def reject(
        self,
        *,
        meta: EnvelopeMeta,
        request_id: str,
        source: NotificationSource | None = None,
    ) -> Envelope[EvolutionRequest]:
        """Reject one pending request."""

    @abstractmethod
    async def apply(
        self, *, meta: EnvelopeMeta, request_id: str
    ) -> Envelope[EvolutionRequest]:
        """Write an approved request's configuration to the live state."""

    @abstractmethod
    async def rollback(
        self, *, meta: EnvelopeMeta, request_id: str
    ) -> Envelope[EvolutionRequest]:
        """Restore the protective snapshot of a failed request."""

    @abstractmethod
    async def get_request(
        self, *, meta: EnvelopeMeta, request_id: str
    ) -> Envelope[EvolutionRequest]:
        """Return one request by id."""

    @abstractmethod
    async def list_pending(self, *, meta: EnvelopeMeta) -> Envelope[list[EvolutionRequest]]:
        """List unexpired pending requests, newest first."""

    @abstractmethod
    async def history(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[EvolutionRequest]]:
        """List every request, newest first."""

    @abstractmethod
    async def preview(
        self, *, meta: EnvelopeMeta, proposed: Mapping[str, Any]
    ) -> Envelope[EvolutionPreview]:
        """Analyze a proposed configuration without side effects."""

    @abstractmethod
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return workflow readiness."""


def build_evolution_workflow_service(
    *,
    settings: GuardSettings,
    snapshot_store: SnapshotStoreService | None = None,
    notification_hub: NotificationHubService | None = None,
    workspace: WorkspaceSubstrate | None = None,
) -> EvolutionWorkflowService:
    """Build default Evolution Workflow implementation from typed settings."""
    from resources.substrates.workspace import (
        LocalWorkspaceSubstrate,
        resolve_workspace_settings,
    )
    from services.action.evolution_workflow.config import (
        resolve_evolution_workflow_settings,
    )
    from services.action.evolution_workflow.implementation import (
        DefaultEvolutionWorkflowService,
    )
    from services.action.notification_hub.service import (
        build_notification_hub_service,
    )
    from services.state.snapshot_store.service import build_snapshot_store_service

    workspace = workspace or LocalWorkspaceSubstrate(
        settings=resolve_workspace_settings(settings)
    )
    return DefaultEvolutionWorkflowService(
        settings=resolve_evolution_workflow_settings(settings),
        snapshot_store=snapshot_store
        or build_snapshot_store_service(settings=settings, workspace=workspace),
        notification_hub=notification_hub
        or build_notification_hub_service(settings=settings),
        workspace=workspace,
    )
