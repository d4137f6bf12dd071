"""Pure workspace diagnostics: per-check verdicts, issues, and critical alerts.

Checks never raise. The service gathers raw observations (config text, mount
state, skills directory) and these functions turn them into a report.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, NamedTuple, Sequence

from services.action.sync_policy.domain import (
    CheckName,
    CheckStatus,
    CriticalAlert,
    CriticalAlertType,
    HealthCheckItem,
    HealthIssue,
    WorkspaceHealthReport,
)
from services.state.snapshot_store.completeness import (
    channel_names,
    parse_config_text,
    score_completeness,
)


class _IssueRule(NamedTuple):
    suggestion: str
    auto_repair: bool
    always_error: bool


_ISSUE_RULES = {
    CheckName.CONFIG_VALID: _IssueRule(
        "Reset configuration or restore from snapshot", True, False
    ),
    CheckName.PROVIDER_CONFIGURED: _IssueRule(
        "Add a provider apiKey under models.providers", False, True
    ),
    CheckName.DURABLE_STORE_CONNECTED: _IssueRule(
        "Mount the durable store so backups and snapshots persist", False, False
    ),
    CheckName.SKILLS_ACCESSIBLE: _IssueRule(
        "Create skills directory or restore from backup", True, False
    ),
}


def check_config(text: str | None) -> HealthCheckItem:
    """Check that the live configuration exists, parses, and has a gateway."""
    if text is None:
        return _item(
            CheckName.CONFIG_VALID,
            CheckStatus.UNHEALTHY,
            "Configuration file not found",
            can_repair=True,
        )
    config = parse_config_text(text)
    if config is None:
        return _item(
            CheckName.CONFIG_VALID,
            CheckStatus.UNHEALTHY,
            "Configuration file contains invalid JSON",
            can_repair=True,
        )
    if not config.get("gateway"):
        return _item(
            CheckName.CONFIG_VALID,
            CheckStatus.DEGRADED,
            "Configuration missing gateway section",
            can_repair=True,
        )
    return _item(
        CheckName.CONFIG_VALID,
        CheckStatus.HEALTHY,
        "Configuration is valid",
        details={
            "hasAgents": bool(config.get("agents")),
            "hasGateway": True,
            "hasChannels": bool(config.get("channels")),
            "hasModels": bool(config.get("models")),
            "channels": channel_names(config),
        },
    )


def check_provider(config: Mapping[str, Any] | None) -> HealthCheckItem:
    """Check that at least one provider or tool credential is configured."""
    providers = _providers(config)
    if not score_completeness(config).breakdown.has_api_keys:
        return _item(
            CheckName.PROVIDER_CONFIGURED,
            CheckStatus.UNHEALTHY,
            "No AI provider API key configured",
            details={"customProviders": providers},
        )
    return _item(
        CheckName.PROVIDER_CONFIGURED,
        CheckStatus.HEALTHY,
        f"AI provider configured ({len(providers)} custom provider(s))",
        details={"customProviders": providers},
    )


def check_durable_store(mounted: bool) -> HealthCheckItem:
    if not mounted:
        return _item(
            CheckName.DURABLE_STORE_CONNECTED,
            CheckStatus.UNHEALTHY,
            "Durable store is not mounted; backups and snapshots will not persist",
        )
    return _item(
        CheckName.DURABLE_STORE_CONNECTED,
        CheckStatus.HEALTHY,
        "Durable store connected and accessible",
    )


def check_skills(*, exists: bool, count: int) -> HealthCheckItem:
    if not exists:
        return _item(
            CheckName.SKILLS_ACCESSIBLE,
            CheckStatus.DEGRADED,
            "Skills directory does not exist",
            can_repair=True,
        )
    return _item(
        CheckName.SKILLS_ACCESSIBLE,
        CheckStatus.HEALTHY,
        f"Skills directory accessible ({count} skill(s))",
        details={"skillCount": count},
    )


def build_report(
    checks: Sequence[HealthCheckItem], *, timestamp: datetime
) -> WorkspaceHealthReport:
    """Derive issues and the overall verdict from individual checks.

    Any error-severity issue makes the workspace unhealthy; warnings alone
    make it degraded.
    """
    issues = tuple(
        HealthIssue(
            check=item.name,
            severity=(
                "error"
                if _ISSUE_RULES[item.name].always_error
                or item.status is CheckStatus.UNHEALTHY
                else "warning"
            ),
            description=item.message,
            suggestion=_ISSUE_RULES[item.name].suggestion,
            auto_repair_available=_ISSUE_RULES[item.name].auto_repair,
        )
        for item in checks
        if item.status is not CheckStatus.HEALTHY
    )
    if any(issue.severity == "error" for issue in issues):
        overall = CheckStatus.UNHEALTHY
    elif issues:
        overall = CheckStatus.DEGRADED
    else:
        overall = CheckStatus.HEALTHY
    return WorkspaceHealthReport(
        overall=overall,
        timestamp=timestamp,
        checks=tuple(checks),
        issues=issues,
        auto_repair_available=any(issue.auto_repair_available for issue in issues),
    )


def collect_critical_alerts(
    config: Mapping[str, Any] | None, *, store_mounted: bool
) -> list[CriticalAlert]:
    """Return setup gaps that keep the assistant from working properly."""
    alerts: list[CriticalAlert] = []
    if not score_completeness(config).breakdown.has_api_keys:
        alerts.append(
            CriticalAlert(
                type=CriticalAlertType.MISSING_API_KEY,
                severity="error",
                title="AI Provider Not Configured",
                message=(
                    "No AI provider API key is set. The assistant cannot respond "
                    "to messages without an API key."
                ),
                action="Set API Key",
            )
        )
    if not _gateway_token(config):
        alerts.append(
            CriticalAlert(
                type=CriticalAlertType.MISSING_GATEWAY_TOKEN,
                severity="warning",
                title="Gateway Token Not Set",
                message=(
                    "The gateway authentication token is not configured. It is "
                    "required for secure access to the control UI."
                ),
                action="Set Gateway Token",
            )
        )
    if not store_mounted:
        alerts.append(
            CriticalAlert(
                type=CriticalAlertType.DURABLE_STORE_UNAVAILABLE,
                severity="warning",
                title="Persistent Storage Not Available",
                message=(
                    "The durable store is not mounted. Conversations and settings "
                    "will be lost when the container restarts."
                ),
                action="Mount Durable Store",
            )
        )
    return alerts


def minimal_config(*, workspace_dir: str, gateway: Mapping[str, Any]) -> dict[str, Any]:
    """Return the reset configuration used when the live file is unusable."""
    return {
        "agents": {"defaults": {"workspace": workspace_dir}},
        "gateway": dict(gateway),
        "channels": {},
    }


def _item(
    name: CheckName,
    status: CheckStatus,
    message: str,
    *,
    details: dict[str, Any] | None = None,
    can_repair: bool = False,
) -> HealthCheckItem:
    return HealthCheckItem(
        name=name,
        status=status,
        message=message,
        details=details or {},
        can_repair=can_repair,
    )


def _providers(config: Mapping[str, Any] | None) -> list[str]:
    models = config.get("models") if isinstance(config, Mapping) else None
    providers = models.get("providers") if isinstance(models, Mapping) else None
    return list(providers) if isinstance(providers, Mapping) else []


def _gateway_token(config: Mapping[str, Any] | None) -> bool:
    """Return whether ``gateway.auth.token`` holds a non-empty string."""
    current: object = config
    for key in ("gateway", "auth", "token"):
        if not isinstance(current, Mapping):
            return False
        current = current.get(key)
    return isinstance(current, str) and bool(current.strip())
