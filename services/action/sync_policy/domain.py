"""Domain contracts for Sync Policy Service payloads."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.json_models import PersistedModel
from services.state.snapshot_store.completeness import CompletenessScore

ALERT_ID_PREFIX = "alert"

SYNC_BLOCKED = "SYNC_BLOCKED"
SYNC_SOURCE_MISSING = "SYNC_SOURCE_MISSING"
ALERT_NOT_FOUND = "ALERT_NOT_FOUND"

LOSS_API_KEYS = "API Keys"
LOSS_CONVERSATIONS = "Conversation history"
LOSS_DEVICES = "Device pairings"
CHANNEL_LABEL_PREFIX = "Channel: "


class SyncAction(str, Enum):
    """Outcome of validating a local-to-backup sync."""

    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"


class DecisionRule(str, Enum):
    """Which policy rule produced a decision, in evaluation order."""

    CHANNELS_EMPTIED = "channels_emptied"
    SCORE_COLLAPSE = "score_collapse"
    SCORE_REGRESSION = "score_regression"
    BELOW_MINIMUM = "below_minimum"
    DATA_LOSS = "data_loss"
    CLEAN = "clean"


class ConflictAlertType(str, Enum):
    """Category of a recorded dangerous-sync alert."""

    EMPTY_OVERWRITES_FULL = "empty_overwrites_full"
    CONFIG_REGRESSION = "config_regression"
    CHANNEL_LOST = "channel_lost"
    DEVICE_LOST = "device_lost"
    CONVERSATION_LOST = "conversation_lost"
    API_KEY_LOST = "api_key_lost"


class AlertSeverity(str, Enum):
    """Conflict alert urgency."""

    WARNING = "warning"
    CRITICAL = "critical"


class SyncDiff(PersistedModel):
    """What a sync would lose, keep, and add in the backup."""

    will_lose: tuple[str, ...] = ()
    will_keep: tuple[str, ...] = ()
    will_add: tuple[str, ...] = ()


class SyncDecision(PersistedModel):
    """Allow, warn, or block verdict with full scoring context."""

    action: SyncAction
    reason: str
    rule: DecisionRule
    requires_confirmation: bool
    local_score: CompletenessScore
    remote_score: CompletenessScore
    diff: SyncDiff


class ConflictAlert(PersistedModel):
    """One persisted record of a dangerous sync."""

    id: str
    type: ConflictAlertType
    severity: AlertSeverity
    timestamp: datetime
    description: str
    local_score: int
    remote_score: int
    suggested_action: str
    resolved: bool = False
    resolved_at: datetime | None = None
    resolved_by: Literal["user", "auto"] | None = None


class ProtectionOutcome(BaseModel):
    """Result of handling a warn or block decision."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    blocked: bool
    snapshot_id: str | None = None
    alert_id: str | None = None


class SyncResult(PersistedModel):
    """Outcome of one protected or plain sync."""

    success: bool
    last_sync: str | None = None
    sanitized: tuple[str, ...] = ()
    validation: SyncDecision | None = None
    blocked: bool = False
    snapshot_id: str | None = None
    alert_id: str | None = None


class PolicyStatus(PersistedModel):
    """Current local and backup scores with alert and sync bookkeeping."""

    local_score: CompletenessScore
    remote_score: CompletenessScore
    sync_safe: bool
    pending_alerts: int
    last_sync_time: str | None = None


class HealthStatus(BaseModel):
    """Sync policy readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    durable_store_ready: bool
    workspace_ready: bool
    detail: str


class CheckStatus(str, Enum):
    """Result level of one workspace diagnostic check."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class CheckName(str, Enum):
    """Workspace diagnostic checks, in report order."""

    CONFIG_VALID = "config_valid"
    PROVIDER_CONFIGURED = "provider_configured"
    DURABLE_STORE_CONNECTED = "durable_store_connected"
    SKILLS_ACCESSIBLE = "skills_accessible"


class HealthCheckItem(PersistedModel):
    """Outcome of one workspace diagnostic check."""

    name: CheckName
    status: CheckStatus
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    can_repair: bool = False


class HealthIssue(PersistedModel):
    """One failing check with a suggested remedy."""

    check: CheckName
    severity: Literal["warning", "error"]
    description: str
    suggestion: str
    auto_repair_available: bool


class WorkspaceHealthReport(PersistedModel):
    """Full workspace diagnosis with an overall verdict."""

    overall: CheckStatus
    timestamp: datetime
    checks: tuple[HealthCheckItem, ...]
    issues: tuple[HealthIssue, ...] = ()
    auto_repair_available: bool = False


class CriticalAlertType(str, Enum):
    """Missing setup that keeps the assistant from working properly."""

    MISSING_API_KEY = "missing_api_key"
    MISSING_GATEWAY_TOKEN = "missing_gateway_token"
    DURABLE_STORE_UNAVAILABLE = "durable_store_unavailable"


class CriticalAlert(PersistedModel):
    """Prominent setup warning for operators."""

    type: CriticalAlertType
    severity: Literal["warning", "error"]
    title: str
    message: str
    action: str


class RepairResult(PersistedModel):
    """Outcome of automatic repair plus the report taken afterwards."""

    success: bool
    repaired: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    error: str | None = None
    snapshot_id: str | None = None
    report: WorkspaceHealthReport
