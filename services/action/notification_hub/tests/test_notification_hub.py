"""Behavior tests for Notification Hub Service implementation."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any, Mapping

import pytest

from packages.guard_shared.envelope import EnvelopeKind, EnvelopeMeta, new_meta
from packages.guard_shared.errors import ErrorCategory, codes
from services.action.notification_hub.config import NotificationHubSettings
from services.action.notification_hub.domain import (
    PENDING_EVOLUTION_NOT_FOUND,
    ActionType,
    ChangeSummary,
    EvolutionDetails,
    NotificationType,
    PendingStatus,
    Severity,
)
from services.action.notification_hub.implementation import (
    DefaultNotificationHubService,
)


def _meta() -> EnvelopeMeta:
    return new_meta(kind=EnvelopeKind.EVENT, source="test", principal="system")


class _Clock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = datetime(2026, 2, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class _Recorder:
    """Subscriber that records every frame it receives."""

    def __init__(self) -> None:
        self.frames: list[dict[str, Any]] = []

    async def send(self, frame: Mapping[str, Any]) -> None:
        self.frames.append(dict(frame))

    def types(self) -> list[str]:
        return [item["type"] for item in self.frames]


class _Broken:
    """Subscriber whose sends always fail."""

    def __init__(self, *, fail_after: int = 0) -> None:
        self._remaining = fail_after

    async def send(self, frame: Mapping[str, Any]) -> None:
        if self._remaining <= 0:
            raise ConnectionError("socket closed")
        self._remaining -= 1


class _Stalled:
    """Subscriber that accepts the first frame and then hangs."""

    def __init__(self) -> None:
        self._sent = 0

    async def send(self, frame: Mapping[str, Any]) -> None:
        self._sent += 1
        if self._sent > 1:
            await asyncio.sleep(10)


def _hub(**overrides: object) -> tuple[DefaultNotificationHubService, _Clock]:
    clock = _Clock()
    return (
        DefaultNotificationHubService(
            settings=NotificationHubSettings(**overrides), clock=clock
        ),
        clock,
    )


def _details(request_id: str = "evo-1", risk: str = "high") -> EvolutionDetails:
    return EvolutionDetails(
        request_id=request_id,
        target_path="models.providers.openai.apiKey",
        risk_level=risk,
        changes=(
            ChangeSummary(
                path="models.providers.openai.apiKey", old_value="a", new_value="b"
            ),
        ),
        reason="rotate key",
    )


@pytest.mark.asyncio
async def test_add_broadcasts_and_trims_oldest() -> None:
    """Adds should reach subscribers and the store should keep the newest."""
    hub, clock = _hub(max_notifications=2)
    recorder = _Recorder()
    assert (await hub.subscribe(meta=_meta(), subscriber=recorder)).value is True

    titles = []
    for index in range(3):
        clock.advance(1)
        result = await hub.add(
            meta=_meta(),
            type=NotificationType.SNAPSHOT_CREATED,
            title=f"snapshot {index}",
            message="created",
        )
        assert result.ok
        titles.append(result.value.title)

    assert recorder.types() == ["init", "notification", "notification", "notification"]
    assert recorder.frames[1]["payload"]["title"] == "snapshot 0"
    assert recorder.frames[1]["payload"]["severity"] == "info"

    listed = await hub.list_notifications(meta=_meta())
    assert [item.title for item in listed.value] == ["snapshot 2", "snapshot 1"]


@pytest.mark.asyncio
async def test_failing_subscriber_is_dropped_without_affecting_others() -> None:
    """A send failure should deregister only the failing subscriber."""
    hub, _ = _hub()
    healthy = _Recorder()
    await hub.subscribe(meta=_meta(), subscriber=healthy)
    await hub.subscribe(meta=_meta(), subscriber=_Broken(fail_after=1))

    await hub.add(
        meta=_meta(), type=NotificationType.SYNC_FAILED, title="t", message="m"
    )

    status = await hub.status(meta=_meta())
    assert status.value.connected_clients == 1
    assert healthy.types() == ["init", "notification"]


@pytest.mark.asyncio
async def test_stalled_subscriber_is_dropped_after_send_timeout() -> None:
    """A subscriber that never completes a send should be removed."""
    hub, _ = _hub(send_timeout_seconds=0.01)
    await hub.subscribe(meta=_meta(), subscriber=_Stalled())

    await hub.add(
        meta=_meta(), type=NotificationType.SYNC_COMPLETED, title="t", message="m"
    )

    assert (await hub.status(meta=_meta())).value.connected_clients == 0


@pytest.mark.asyncio
async def test_subscribe_sends_init_with_current_state() -> None:
    """New subscribers should receive notifications and pending approvals."""
    hub, clock = _hub()
    await hub.add(meta=_meta(), type=NotificationType.SYNC_COMPLETED, title="t", message="m")
    await hub.create_pending_evolution(
        meta=_meta(),
        details=_details(),
        expires_at=clock.now + timedelta(seconds=300),
    )

    recorder = _Recorder()
    await hub.subscribe(meta=_meta(), subscriber=recorder)

    assert recorder.types() == ["init"]
    payload = recorder.frames[0]["payload"]
    assert len(payload["notifications"]) == 2
    assert [item["id"] for item in payload["pendingEvolutions"]] == ["evo-1"]


@pytest.mark.asyncio
async def test_subscribe_rejects_subscriber_that_cannot_receive_init() -> None:
    """A subscriber failing the init frame should never be registered."""
    hub, _ = _hub()

    result = await hub.subscribe(meta=_meta(), subscriber=_Broken())

    assert not result.ok
    assert result.errors[0].category == ErrorCategory.DEPENDENCY
    assert result.errors[0].code == codes.DEPENDENCY_UNAVAILABLE
    assert (await hub.status(meta=_meta())).value.connected_clients == 0


@pytest.mark.asyncio
async def test_pending_evolution_carries_actions_and_risk_severity() -> None:
    """Approval requests should offer approve/reject/test with endpoints."""
    hub, clock = _hub(approval_endpoint_prefix="/api/admin/evolution/")

    result = await hub.create_pending_evolution(
        meta=_meta(),
        details=_details(risk="medium"),
        expires_at=clock.now + timedelta(seconds=300),
    )

    assert result.ok
    pending = result.value
    assert pending.status is PendingStatus.PENDING
    notification = pending.notification
    assert notification.type is NotificationType.EVOLUTION_REQUEST
    assert notification.severity is Severity.WARNING
    assert [action.action for action in notification.actions] == [
        ActionType.APPROVE,
        ActionType.REJECT,
        ActionType.TEST,
    ]
    assert notification.actions[0].endpoint == "/api/admin/evolution/evo-1/approve"
    assert notification.data["evolution"]["targetPath"] == (
        "models.providers.openai.apiKey"
    )
    assert notification.data["evolution"]["changes"][0]["newValue"] == "b"

    duplicate = await hub.create_pending_evolution(
        meta=_meta(),
        details=_details(risk="medium"),
        expires_at=clock.now + timedelta(seconds=300),
    )
    assert not duplicate.ok
    assert duplicate.errors[0].category == ErrorCategory.CONFLICT


@pytest.mark.asyncio
async def test_expired_pending_evolutions_are_never_returned() -> None:
    """Expiry should be evaluated lazily on every read."""
    hub, clock = _hub()
    await hub.create_pending_evolution(
        meta=_meta(), details=_details("evo-old"), expires_at=clock.now + timedelta(seconds=60)
    )
    clock.advance(30)
    await hub.create_pending_evolution(
        meta=_meta(), details=_details("evo-new"), expires_at=clock.now + timedelta(seconds=300)
    )

    listed = await hub.list_pending_evolutions(meta=_meta())
    assert [item.id for item in listed.value] == ["evo-new", "evo-old"]

    clock.advance(31)
    listed = await hub.list_pending_evolutions(meta=_meta())
    assert [item.id for item in listed.value] == ["evo-new"]
    assert (await hub.get_pending_evolution(meta=_meta(), request_id="evo-old")).value is None


@pytest.mark.asyncio
async def test_update_status_emits_follow_up_and_update_frame() -> None:
    """Approvals should notify subscribers with a follow-up and a status frame."""
    hub, clock = _hub()
    await hub.create_pending_evolution(
        meta=_meta(), details=_details(), expires_at=clock.now + timedelta(seconds=300)
    )
    recorder = _Recorder()
    await hub.subscribe(meta=_meta(), subscriber=recorder)

    result = await hub.update_evolution_status(
        meta=_meta(), request_id="evo-1", status=PendingStatus.APPROVED
    )

    assert result.ok
    assert result.value.status is PendingStatus.APPROVED
    assert recorder.types() == ["init", "notification", "evolution_update"]
    follow_up = recorder.frames[1]["payload"]
    assert follow_up["type"] == "evolution_approved"
    assert follow_up["message"] == "Approved change to models.providers.openai.apiKey"
    assert recorder.frames[2]["payload"] == {"requestId": "evo-1", "status": "approved"}

    listed = await hub.list_pending_evolutions(meta=_meta())
    assert listed.value == []


@pytest.mark.asyncio
async def test_update_status_unknown_request_is_not_found() -> None:
    hub, _ = _hub()

    result = await hub.update_evolution_status(
        meta=_meta(), request_id="missing", status=PendingStatus.REJECTED
    )

    assert not result.ok
    assert result.errors[0].code == PENDING_EVOLUTION_NOT_FOUND


@pytest.mark.asyncio
async def test_commands_are_acknowledged_to_issuer_only() -> None:
    """Command acks go to the issuing subscriber; clears reach everyone."""
    hub, _ = _hub()
    added = await hub.add(
        meta=_meta(), type=NotificationType.SYNC_FAILED, title="t", message="m"
    )
    notification_id = added.value.id
    issuer = _Recorder()
    observer = _Recorder()
    await hub.subscribe(meta=_meta(), subscriber=issuer)
    await hub.subscribe(meta=_meta(), subscriber=observer)

    pong = await hub.handle_command(
        meta=_meta(), subscriber=issuer, command={"type": "ping"}
    )
    assert pong.value["type"] == "pong"
    assert pong.value["payload"]["timestamp"] == "2026-02-01T09:00:00+00:00"

    read = await hub.handle_command(
        meta=_meta(),
        subscriber=issuer,
        command={"type": "mark_read", "payload": {"id": notification_id}},
    )
    assert read.value == {
        "type": "mark_read_result",
        "payload": {"id": notification_id, "success": True},
    }
    assert (await hub.get_notification(meta=_meta(), notification_id=notification_id)).value.read

    dismissed = await hub.handle_command(
        meta=_meta(),
        subscriber=issuer,
        command={"type": "dismiss", "id": "unknown"},
    )
    assert dismissed.value["payload"] == {"id": "unknown", "success": False}

    cleared = await hub.handle_command(
        meta=_meta(), subscriber=issuer, command={"type": "clear_all"}
    )
    assert cleared.value["type"] == "clear_all_result"
    assert cleared.value["payload"]["cleared"] == 1

    assert issuer.types() == [
        "init",
        "pong",
        "mark_read_result",
        "dismiss_result",
        "notifications_cleared",
        "clear_all_result",
    ]
    assert observer.types() == ["init", "notifications_cleared"]


@pytest.mark.asyncio
async def test_unknown_and_malformed_commands_answer_with_error_frames() -> None:
    hub, _ = _hub()
    issuer = _Recorder()
    await hub.subscribe(meta=_meta(), subscriber=issuer)

    unknown = await hub.handle_command(
        meta=_meta(), subscriber=issuer, command={"type": "reboot"}
    )
    malformed = await hub.handle_command(meta=_meta(), subscriber=issuer, command=[1, 2])
    missing_id = await hub.handle_command(
        meta=_meta(), subscriber=issuer, command={"type": "mark_read"}
    )

    assert unknown.value["type"] == "error"
    assert "reboot" in unknown.value["payload"]["message"]
    assert malformed.value["type"] == "error"
    assert missing_id.value["type"] == "error"


@pytest.mark.asyncio
async def test_dismissed_notifications_hidden_unless_requested() -> None:
    hub, _ = _hub()
    added = await hub.add(
        meta=_meta(), type=NotificationType.CONFLICT_DETECTED, title="t", message="m"
    )
    await hub.dismiss(meta=_meta(), notification_id=added.value.id)

    assert (await hub.list_notifications(meta=_meta())).value == []
    everything = await hub.list_notifications(meta=_meta(), include_dismissed=True)
    assert [item.dismissed for item in everything.value] == [True]
    assert (await hub.status(meta=_meta())).value.unread_notifications == 0
