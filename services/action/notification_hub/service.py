"""Authoritative in-process Python API for Notification Hub Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping, Sequence

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.envelope import Envelope, EnvelopeMeta
from services.action.notification_hub.domain import (
    EvolutionDetails,
    HealthStatus,
    HubStatus,
    Notification,
    NotificationAction,
    NotificationSource,
    NotificationType,
    PendingEvolution,
    PendingStatus,
    Severity,
    Subscriber,
)


class NotificationHubService(ABC):
    """Public API for fanning out events to live subscribers."""

    @abstractmethod
    async def add(
        self,
        *,
        meta: EnvelopeMeta,
        type: NotificationType,
        title: str,
        message: str,
        severity: Severity = Severity.INFO,
        source: NotificationSource | None = None,
        actions: Sequence[NotificationAction] = (),
        data: Mapping[str, Any] | None = None,
    ) -> Envelope[Notification]:
        """Store and broadcast one notification."""

    @abstractmethod
    async def create_pending_evolution(
        self,
        *,
        meta: EnvelopeMeta,
        details: EvolutionDetails,
        expires_at: datetime,
        source: NotificationSource | None = None,
    ) -> Envelope[PendingEvolution]:
        """Register one change awaiting approval and notify subscribers."""

    @abstractmethod
    async def update_evolution_status(
        self,
        *,
        meta: EnvelopeMeta,
        request_id: str,
        status: PendingStatus,
        source: NotificationSource | None = None,
    ) -> Envelope[PendingEvolution]:
        """Change one pending evolution's status and announce it."""

    @abstractmethod
    async def get_pending_evolution(
        self, *, meta: EnvelopeMeta, request_id: str
    ) -> Envelope[PendingEvolution | None]:
        """Return one unexpired pending evolution by id."""

    @abstractmethod
    async def list_pending_evolutions(
        self, *, meta: EnvelopeMeta
    ) -> Envelope[list[PendingEvolution]]:
        """List unexpired pending evolutions, newest first."""

    @abstractmethod
    async def list_notifications(
        self, *, meta: EnvelopeMeta, include_dismissed: bool = False
    ) -> Envelope[list[Notification]]:
        """List notifications, newest first."""

    @abstractmethod
    async def get_notification(
        self, *, meta: EnvelopeMeta, notification_id: str
    ) -> Envelope[Notification | None]:
        """Return one notification by id."""

    @abstractmethod
    async def mark_read(
        self, *, meta: EnvelopeMeta, notification_id: str
    ) -> Envelope[bool]:
        """Mark one notification as read."""

    @abstractmethod
    async def dismiss(self, *, meta: EnvelopeMeta, notification_id: str) -> Envelope[bool]:
        """Dismiss one notification."""

    @abstractmethod
    async def clear_all(self, *, meta: EnvelopeMeta) -> Envelope[int]:
        """Drop every notification and announce the clear."""

    @abstractmethod
    async def subscribe(
        self, *, meta: EnvelopeMeta, subscriber: Subscriber
    ) -> Envelope[bool]:
        """Register one subscriber after sending it the ``init`` frame."""

    @abstractmethod
    async def unsubscribe(
        self, *, meta: EnvelopeMeta, subscriber: Subscriber
    ) -> Envelope[bool]:
        """Deregister one subscriber."""

    @abstractmethod
    async def handle_command(
        self,
        *,
        meta: EnvelopeMeta,
        subscriber: Subscriber,
        command: object,
    ) -> Envelope[dict[str, Any]]:
        """Process one client frame and acknowledge it to its sender only."""

    @abstractmethod
    async def status(self, *, meta: EnvelopeMeta) -> Envelope[HubStatus]:
        """Return connected client and backlog counts."""

    @abstractmethod
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return hub readiness."""


def build_notification_hub_service(*, settings: GuardSettings) -> NotificationHubService:
    """Build default Notification Hub implementation from typed settings."""
    from services.action.notification_hub.config import (
        resolve_notification_hub_settings,
    )
    from services.action.notification_hub.implementation import (
        DefaultNotificationHubService,
    )

    return DefaultNotificationHubService(
        settings=resolve_notification_hub_settings(settings)
    )
