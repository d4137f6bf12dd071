"""Domain contracts for Sync Failure Tracker Service payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.json_models import PersistedModel


class SyncStatus(PersistedModel):
    """Persisted consecutive-failure counter and alert bookkeeping."""

    consecutive_failures: int = Field(default=0, ge=0)
    last_failure_time: datetime | None = None
    last_failure_error: str | None = None
    last_success_time: datetime | None = None
    alert_sent: bool = False
    alert_sent_at: datetime | None = None


class FailureOutcome(BaseModel):
    """Result of recording one sync failure."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    should_alert: bool
    consecutive_failures: int
    tracked: bool = True


class SyncFailureAlert(BaseModel):
    """Structured alert emitted once the failure threshold is crossed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    consecutive_failures: int
    last_error: str
    timestamp: datetime
    message: str
    action: str


class HealthStatus(BaseModel):
    """Sync failure tracker readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    durable_store_ready: bool
    detail: str
