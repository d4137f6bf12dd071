"""Sync Policy Service native package exports."""

from services.action.sync_policy.component import MANIFEST, SERVICE_COMPONENT_ID
from services.action.sync_policy.config import (
    SyncPolicySettings,
    resolve_sync_policy_settings,
)
from services.action.sync_policy.domain import (
    ALERT_NOT_FOUND,
    SYNC_BLOCKED,
    SYNC_SOURCE_MISSING,
    AlertSeverity,
    CheckName,
    CheckStatus,
    ConflictAlert,
    ConflictAlertType,
    CriticalAlert,
    CriticalAlertType,
    DecisionRule,
    HealthCheckItem,
    HealthIssue,
    HealthStatus,
    PolicyStatus,
    ProtectionOutcome,
    RepairResult,
    SyncAction,
    SyncDecision,
    SyncDiff,
    SyncResult,
    WorkspaceHealthReport,
)
from services.action.sync_policy.implementation import DefaultSyncPolicyService
from services.action.sync_policy.policy import compute_diff, decide
from services.action.sync_policy.service import (
    SyncPolicyService,
    build_sync_policy_service,
)

__all__ = [
    "ALERT_NOT_FOUND",
    "MANIFEST",
    "SERVICE_COMPONENT_ID",
    "SYNC_BLOCKED",
    "SYNC_SOURCE_MISSING",
    "AlertSeverity",
    "CheckName",
    "CheckStatus",
    "ConflictAlert",
    "ConflictAlertType",
    "CriticalAlert",
    "CriticalAlertType",
    "DecisionRule",
    "DefaultSyncPolicyService",
    "HealthCheckItem",
    "HealthIssue",
    "HealthStatus",
    "PolicyStatus",
    "ProtectionOutcome",
    "RepairResult",
    "SyncAction",
    "SyncDecision",
    "SyncDiff",
    "SyncPolicyService",
    "SyncPolicySettings",
    "SyncResult",
    "WorkspaceHealthReport",
    "build_sync_policy_service",
    "compute_diff",
    "decide",
    "resolve_sync_policy_settings",
]
