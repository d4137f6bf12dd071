"""Domain contracts for Evolution Workflow Service payloads."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.json_models import PersistedModel
from services.action.evolution_workflow.risk import RiskAnalysis
from services.action.notification_hub.domain import NotificationSource

EVOLUTION_ID_PREFIX = "evo"

EVOLUTION_NOT_FOUND = "EVOLUTION_NOT_FOUND"
CONFIG_UNREADABLE = "CONFIG_UNREADABLE"
ROLLBACK_SNAPSHOT_MISSING = "ROLLBACK_SNAPSHOT_MISSING"


class EvolutionStatus(str, Enum):
    """Lifecycle status of one proposed configuration change."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    APPLIED = "applied"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"
    EXPIRED = "expired"


ALLOWED_TRANSITIONS: dict[EvolutionStatus, frozenset[EvolutionStatus]] = {
    EvolutionStatus.PENDING: frozenset(
        {EvolutionStatus.APPROVED, EvolutionStatus.REJECTED, EvolutionStatus.EXPIRED}
    ),
    EvolutionStatus.APPROVED: frozenset(
        {EvolutionStatus.APPLIED, EvolutionStatus.FAILED}
    ),
    EvolutionStatus.FAILED: frozenset({EvolutionStatus.ROLLED_BACK}),
}


def can_transition(current: EvolutionStatus, target: EvolutionStatus) -> bool:
    """Return whether ``current -> target`` is a legal lifecycle step."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class ApplyResult(PersistedModel):
    """Outcome of writing a proposed configuration."""

    success: bool
    error: str | None = None


class EvolutionRequest(PersistedModel):
    """One proposed configuration change and its disposition."""

    id: str
    status: EvolutionStatus = EvolutionStatus.PENDING
    source: NotificationSource | None = None
    current_config: dict[str, Any] = Field(default_factory=dict)
    proposed_config: dict[str, Any] = Field(default_factory=dict)
    analysis: RiskAnalysis
    snapshot_id: str | None = None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime | None = None
    reason: str | None = None
    result: ApplyResult | None = None


class EvolutionPreview(PersistedModel):
    """Risk analysis and diff text for a change that has not been requested."""

    analysis: RiskAnalysis
    diff: str
    summary: str


class HealthStatus(BaseModel):
    """Evolution workflow readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    workspace_ready: bool
    pending_requests: int
    detail: str
