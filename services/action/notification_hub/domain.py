"""Domain contracts for Notification Hub Service payloads and frames."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Mapping, Protocol

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.json_models import PersistedModel

NOTIFICATION_ID_PREFIX = "notif"

PENDING_EVOLUTION_NOT_FOUND = "PENDING_EVOLUTION_NOT_FOUND"

RiskLevel = Literal["safe", "medium", "high"]


class NotificationType(str, Enum):
    """Kinds of events fanned out to subscribers."""

    EVOLUTION_REQUEST = "evolution_request"
    EVOLUTION_APPROVED = "evolution_approved"
    EVOLUTION_REJECTED = "evolution_rejected"
    EVOLUTION_APPLIED = "evolution_applied"
    EVOLUTION_FAILED = "evolution_failed"
    EVOLUTION_ROLLED_BACK = "evolution_rolled_back"
    CONFLICT_DETECTED = "conflict_detected"
    SNAPSHOT_CREATED = "snapshot_created"
    SNAPSHOT_RESTORED = "snapshot_restored"
    SYNC_COMPLETED = "sync_completed"
    SYNC_FAILED = "sync_failed"


class Severity(str, Enum):
    """Notification urgency."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ActionType(str, Enum):
    """Operator actions offered by a notification."""

    APPROVE = "approve"
    REJECT = "reject"
    TEST = "test"
    VIEW = "view"
    DISMISS = "dismiss"


class PendingStatus(str, Enum):
    """Status of a change waiting in the hub for operator approval."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    TESTING = "testing"
    EXPIRED = "expired"


class FrameType(str, Enum):
    """Frame types on the live duplex connection."""

    INIT = "init"
    NOTIFICATION = "notification"
    EVOLUTION_UPDATE = "evolution_update"
    NOTIFICATIONS_CLEARED = "notifications_cleared"
    PONG = "pong"
    MARK_READ_RESULT = "mark_read_result"
    DISMISS_RESULT = "dismiss_result"
    CLEAR_ALL_RESULT = "clear_all_result"
    ERROR = "error"
    PING = "ping"
    MARK_READ = "mark_read"
    DISMISS = "dismiss"
    CLEAR_ALL = "clear_all"


class NotificationSource(PersistedModel):
    """Channel and user that originated an event."""

    channel: Literal["telegram", "discord", "slack", "line", "admin_ui", "system"]
    channel_id: str | None = None
    user_id: str | None = None
    user_name: str | None = None
    message_id: str | None = None


class NotificationAction(PersistedModel):
    """One action button attached to a notification."""

    label: str
    action: ActionType
    endpoint: str | None = None
    data: dict[str, Any] | None = None


class ChangeSummary(PersistedModel):
    """One changed configuration path carried in an approval request."""

    path: str
    old_value: Any = None
    new_value: Any = None


class EvolutionDetails(PersistedModel):
    """Approval request details attached to an ``evolution_request``."""

    request_id: str
    target_path: str
    risk_level: RiskLevel
    changes: tuple[ChangeSummary, ...] = ()
    snapshot_id: str | None = None
    reason: str | None = None


class Notification(PersistedModel):
    """One event delivered to live subscribers."""

    id: str
    type: NotificationType
    severity: Severity = Severity.INFO
    title: str
    message: str
    timestamp: datetime
    source: NotificationSource | None = None
    actions: tuple[NotificationAction, ...] = ()
    data: dict[str, Any] = Field(default_factory=dict)
    read: bool = False
    dismissed: bool = False


class PendingEvolution(PersistedModel):
    """A change waiting for operator approval, expiring at ``expires_at``."""

    id: str
    notification: Notification
    created_at: datetime
    expires_at: datetime
    status: PendingStatus = PendingStatus.PENDING


class HubStatus(PersistedModel):
    """Counts reported by the notification status endpoint."""

    connected_clients: int
    pending_evolutions: int
    unread_notifications: int


class HealthStatus(BaseModel):
    """Notification hub readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    subscribers: int
    detail: str


class Subscriber(Protocol):
    """One live connection receiving JSON frames."""

    async def send(self, frame: Mapping[str, Any]) -> None:
        """Deliver one frame; raise on failure."""


def frame(frame_type: FrameType, payload: Any = None) -> dict[str, Any]:
    """Build one wire frame; ``payload`` is omitted when ``None``."""
    built: dict[str, Any] = {"type": frame_type.value}
    if payload is not None:
        built["payload"] = payload
    return built


def severity_for_risk(risk: RiskLevel) -> Severity:
    """Map a risk tier onto notification severity."""
    if risk == "high":
        return Severity.CRITICAL
    if risk == "medium":
        return Severity.WARNING
    return Severity.INFO
