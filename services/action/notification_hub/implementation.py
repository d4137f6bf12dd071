"""Concrete Notification Hub Service implementation."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any, Mapping, Sequence

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    utc_now,
    validate_meta,
)
from packages.guard_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    not_found_error,
    validation_error,
)
from packages.guard_shared.ids import generate_prefixed_id
from packages.guard_shared.logging import get_logger, public_api_instrumented
from services.action.notification_hub.component import SERVICE_COMPONENT_ID
from services.action.notification_hub.config import (
    NotificationHubSettings,
    resolve_notification_hub_settings,
)
from services.action.notification_hub.domain import (
    NOTIFICATION_ID_PREFIX,
    PENDING_EVOLUTION_NOT_FOUND,
    ActionType,
    EvolutionDetails,
    FrameType,
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
    frame,
    severity_for_risk,
)
from services.action.notification_hub.service import NotificationHubService

_LOGGER = get_logger(__name__)

_FOLLOW_UPS: dict[PendingStatus, tuple[NotificationType, str, str]] = {
    PendingStatus.APPROVED: (
        NotificationType.EVOLUTION_APPROVED,
        "Change approved",
        "Approved change to {target}",
    ),
    PendingStatus.REJECTED: (
        NotificationType.EVOLUTION_REJECTED,
        "Change rejected",
        "Rejected change to {target}",
    ),
}


class DefaultNotificationHubService(NotificationHubService):
    """In-memory hub holding notifications, pending approvals, and subscribers.

    State lives for the process lifetime only. The runtime builds one instance
    and injects it wherever events are produced.
    """

    def __init__(
        self,
        *,
        settings: NotificationHubSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._notifications: dict[str, Notification] = {}
        self._pending: dict[str, PendingEvolution] = {}
        self._subscribers: list[Subscriber] = []

    @classmethod
    def from_settings(cls, settings: GuardSettings) -> "DefaultNotificationHubService":
        """Build hub from typed root settings."""
        return cls(settings=resolve_notification_hub_settings(settings))

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("type",),
    )
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
        """Store one notification, broadcast it, then trim to the cap."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        notification = await self._add(
            type=NotificationType(type),
            title=title,
            message=message,
            severity=Severity(severity),
            source=source,
            actions=actions,
            data=data,
        )
        return success(meta=meta, payload=notification)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def create_pending_evolution(
        self,
        *,
        meta: EnvelopeMeta,
        details: EvolutionDetails,
        expires_at: datetime,
        source: NotificationSource | None = None,
    ) -> Envelope[PendingEvolution]:
        """Register one change awaiting approval and notify subscribers."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        request_id = details.request_id
        if request_id in self._pending:
            return failure(
                meta=meta,
                errors=[
                    conflict_error(
                        f"pending evolution already registered: {request_id}",
                        metadata={"request_id": request_id},
                    )
                ],
            )

        prefix = f"{self._settings.approval_endpoint_prefix}/{request_id}"
        notification = await self._add(
            type=NotificationType.EVOLUTION_REQUEST,
            title="Configuration change requested",
            message=f"Attempting to modify {details.target_path}",
            severity=severity_for_risk(details.risk_level),
            source=source,
            actions=(
                NotificationAction(
                    label="Approve", action=ActionType.APPROVE, endpoint=f"{prefix}/approve"
                ),
                NotificationAction(
                    label="Reject", action=ActionType.REJECT, endpoint=f"{prefix}/reject"
                ),
                NotificationAction(
                    label="Test first", action=ActionType.TEST, endpoint=f"{prefix}/test"
                ),
            ),
            data={"evolution": details.to_json()},
        )
        pending = PendingEvolution(
            id=request_id,
            notification=notification,
            created_at=self._clock(),
            expires_at=expires_at,
        )
        self._pending[request_id] = pending
        _LOGGER.info(
            "pending evolution registered: request_id=%s risk=%s expires_at=%s",
            request_id,
            details.risk_level,
            expires_at.isoformat(),
        )
        return success(meta=meta, payload=pending)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("request_id", "status"),
    )
    async def update_evolution_status(
        self,
        *,
        meta: EnvelopeMeta,
        request_id: str,
        status: PendingStatus,
        source: NotificationSource | None = None,
    ) -> Envelope[PendingEvolution]:
        """Change one pending evolution's status and announce it."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        current = self._pending.get(request_id)
        if current is None:
            return failure(meta=meta, errors=[_pending_not_found(request_id)])

        status = PendingStatus(status)
        updated = current.model_copy(update={"status": status})
        self._pending[request_id] = updated

        follow_up = _FOLLOW_UPS.get(status)
        if follow_up is not None:
            notification_type, title, template = follow_up
            evolution = current.notification.data.get("evolution") or {}
            await self._add(
                type=notification_type,
                title=title,
                message=template.format(target=evolution.get("targetPath", request_id)),
                severity=Severity.INFO,
                source=source,
            )
        await self._broadcast(
            frame(
                FrameType.EVOLUTION_UPDATE,
                {"requestId": request_id, "status": status.value},
            )
        )
        return success(meta=meta, payload=updated)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("request_id",),
    )
    async def get_pending_evolution(
        self, *, meta: EnvelopeMeta, request_id: str
    ) -> Envelope[PendingEvolution | None]:
        """Return one unexpired pending evolution by id."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        self._reap_expired()
        return success(meta=meta, payload=self._pending.get(request_id))

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def list_pending_evolutions(
        self, *, meta: EnvelopeMeta
    ) -> Envelope[list[PendingEvolution]]:
        """List unexpired pending evolutions, newest first."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(meta=meta, payload=self._pending_snapshot())

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def list_notifications(
        self, *, meta: EnvelopeMeta, include_dismissed: bool = False
    ) -> Envelope[list[Notification]]:
        """List notifications, newest first."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(
            meta=meta,
            payload=self._notification_snapshot(include_dismissed=include_dismissed),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("notification_id",),
    )
    async def get_notification(
        self, *, meta: EnvelopeMeta, notification_id: str
    ) -> Envelope[Notification | None]:
        """Return one notification by id."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(meta=meta, payload=self._notifications.get(notification_id))

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("notification_id",),
    )
    async def mark_read(
        self, *, meta: EnvelopeMeta, notification_id: str
    ) -> Envelope[bool]:
        """Mark one notification as read; ``False`` when unknown."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(meta=meta, payload=self._flag(notification_id, read=True))

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("notification_id",),
    )
    async def dismiss(self, *, meta: EnvelopeMeta, notification_id: str) -> Envelope[bool]:
        """Dismiss one notification; ``False`` when unknown."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(meta=meta, payload=self._flag(notification_id, dismissed=True))

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def clear_all(self, *, meta: EnvelopeMeta) -> Envelope[int]:
        """Drop every notification and announce the clear to all subscribers."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(meta=meta, payload=await self._clear())

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def subscribe(
        self, *, meta: EnvelopeMeta, subscriber: Subscriber
    ) -> Envelope[bool]:
        """Send the ``init`` frame and register the subscriber on success."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        init = frame(
            FrameType.INIT,
            {
                "notifications": [
                    item.to_json() for item in self._notification_snapshot()
                ],
                "pendingEvolutions": [
                    item.to_json() for item in self._pending_snapshot()
                ],
            },
        )
        if not await self._deliver(subscriber, init):
            return failure(
                meta=meta,
                errors=[
                    dependency_error(
                        "failed to deliver init frame to subscriber",
                        code=codes.DEPENDENCY_UNAVAILABLE,
                        retryable=False,
                    )
                ],
            )
        self._subscribers.append(subscriber)
        _LOGGER.info("subscriber connected: total=%d", len(self._subscribers))
        return success(meta=meta, payload=True)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def unsubscribe(
        self, *, meta: EnvelopeMeta, subscriber: Subscriber
    ) -> Envelope[bool]:
        """Deregister one subscriber; ``False`` when it was not registered."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(meta=meta, payload=self._drop(subscriber))

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def handle_command(
        self,
        *,
        meta: EnvelopeMeta,
        subscriber: Subscriber,
        command: object,
    ) -> Envelope[dict[str, Any]]:
        """Process one client frame and acknowledge it to its sender only."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        ack = await self._dispatch_command(command)
        if not await self._deliver(subscriber, ack):
            self._drop(subscriber)
        return success(meta=meta, payload=ack)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def status(self, *, meta: EnvelopeMeta) -> Envelope[HubStatus]:
        """Return connected client and backlog counts."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(
            meta=meta,
            payload=HubStatus(
                connected_clients=len(self._subscribers),
                pending_evolutions=len(self._pending_snapshot()),
                unread_notifications=sum(
                    1 for item in self._notification_snapshot() if not item.read
                ),
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return hub readiness."""
        return success(
            meta=meta,
            payload=HealthStatus(
                service_ready=True, subscribers=len(self._subscribers), detail="ok"
            ),
        )

    async def _add(
        self,
        *,
        type: NotificationType,
        title: str,
        message: str,
        severity: Severity,
        source: NotificationSource | None = None,
        actions: Sequence[NotificationAction] = (),
        data: Mapping[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(
            id=generate_prefixed_id(NOTIFICATION_ID_PREFIX),
            type=type,
            severity=severity,
            title=title,
            message=message,
            timestamp=self._clock(),
            source=source,
            actions=tuple(actions),
            data=dict(data or {}),
        )
        self._notifications[notification.id] = notification
        await self._broadcast(frame(FrameType.NOTIFICATION, notification.to_json()))
        self._trim()
        return notification

    async def _dispatch_command(self, message: object) -> dict[str, Any]:
        """Map one client frame onto its acknowledgement frame."""
        if not isinstance(message, Mapping) or not isinstance(message.get("type"), str):
            return frame(FrameType.ERROR, {"message": "frame must be an object with a type"})

        command = message["type"]
        payload = message.get("payload")
        target = payload.get("id") if isinstance(payload, Mapping) else None
        target = target or message.get("id")

        if command == FrameType.PING.value:
            return frame(FrameType.PONG, {"timestamp": self._clock().isoformat()})
        if command in (FrameType.MARK_READ.value, FrameType.DISMISS.value):
            result_type = (
                FrameType.MARK_READ_RESULT
                if command == FrameType.MARK_READ.value
                else FrameType.DISMISS_RESULT
            )
            if not isinstance(target, str) or not target:
                return frame(FrameType.ERROR, {"message": f"{command} requires an id"})
            if command == FrameType.MARK_READ.value:
                updated = self._flag(target, read=True)
            else:
                updated = self._flag(target, dismissed=True)
            return frame(result_type, {"id": target, "success": updated})
        if command == FrameType.CLEAR_ALL.value:
            cleared = await self._clear()
            return frame(FrameType.CLEAR_ALL_RESULT, {"cleared": cleared, "success": True})

        _LOGGER.info("unknown subscriber command: type=%s", command)
        return frame(FrameType.ERROR, {"message": f"unknown command type: {command}"})

    async def _clear(self) -> int:
        cleared = len(self._notifications)
        self._notifications.clear()
        await self._broadcast(frame(FrameType.NOTIFICATIONS_CLEARED))
        return cleared

    async def _broadcast(self, message: dict[str, Any]) -> None:
        """Send one frame to every subscriber, dropping any that fail."""
        subscribers = list(self._subscribers)
        if not subscribers:
            return
        delivered = await asyncio.gather(
            *(self._deliver(subscriber, message) for subscriber in subscribers)
        )
        for subscriber, ok in zip(subscribers, delivered):
            if not ok:
                self._drop(subscriber)

    async def _deliver(self, subscriber: Subscriber, message: dict[str, Any]) -> bool:
        """Send one frame with a timeout; report failure instead of raising."""
        try:
            await asyncio.wait_for(
                subscriber.send(message), timeout=self._settings.send_timeout_seconds
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning(
                "subscriber send failed: frame_type=%s exception_type=%s",
                message.get("type"),
                type(exc).__name__,
            )
            return False
        return True

    def _drop(self, subscriber: Subscriber) -> bool:
        for position, registered in enumerate(self._subscribers):
            if registered is subscriber:
                del self._subscribers[position]
                _LOGGER.info("subscriber removed: total=%d", len(self._subscribers))
                return True
        return False

    def _flag(self, notification_id: str, **flags: bool) -> bool:
        notification = self._notifications.get(notification_id)
        if notification is None:
            return False
        self._notifications[notification_id] = notification.model_copy(update=flags)
        return True

    def _trim(self) -> None:
        """Drop the oldest notifications beyond the configured cap."""
        overflow = len(self._notifications) - self._settings.max_notifications
        if overflow <= 0:
            return
        oldest = sorted(self._notifications.values(), key=lambda item: item.timestamp)
        for item in oldest[:overflow]:
            del self._notifications[item.id]

    def _reap_expired(self) -> None:
        """Remove pending evolutions whose expiry has passed."""
        now = self._clock()
        for request_id, pending in list(self._pending.items()):
            if pending.expires_at <= now:
                del self._pending[request_id]
                _LOGGER.info("pending evolution expired: request_id=%s", request_id)

    def _pending_snapshot(self) -> list[PendingEvolution]:
        """Unexpired pending entries, newest first; ties keep latest-added first."""
        self._reap_expired()
        return sorted(
            (
                item
                for item in reversed(self._pending.values())
                if item.status is PendingStatus.PENDING
            ),
            key=lambda item: item.created_at,
            reverse=True,
        )

    def _notification_snapshot(
        self, *, include_dismissed: bool = False
    ) -> list[Notification]:
        return sorted(
            (
                item
                for item in reversed(self._notifications.values())
                if include_dismissed or not item.dismissed
            ),
            key=lambda item: item.timestamp,
            reverse=True,
        )


def _validate(meta: EnvelopeMeta) -> ErrorDetail | None:
    try:
        validate_meta(meta)
    except ValueError as exc:
        return validation_error(str(exc), code=codes.INVALID_ARGUMENT)
    return None


def _pending_not_found(request_id: str) -> ErrorDetail:
    return not_found_error(
        f"pending evolution not found: {request_id}",
        code=PENDING_EVOLUTION_NOT_FOUND,
        metadata={"request_id": request_id},
    )
