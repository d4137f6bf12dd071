"""Concrete Sync Policy Service implementation."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Literal, NamedTuple

from pydantic import TypeAdapter, ValidationError

from packages.guard_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    child_meta,
    failure,
    success,
    utc_now,
    validate_meta,
)
from packages.guard_shared.errors import (
    ErrorCategory,
    ErrorDetail,
    codes,
    dependency_error,
    internal_error,
    not_found_error,
    policy_error,
    validation_error,
)
from packages.guard_shared.ids import generate_prefixed_id
from packages.guard_shared.logging import get_logger, public_api_instrumented
from resources.substrates.durable_store import DurableStoreSubstrate
from resources.substrates.workspace import TrackedGroup, WorkspaceSubstrate
from services.action.notification_hub.domain import NotificationType, Severity
from services.action.notification_hub.service import NotificationHubService
from services.action.sync_policy.component import SERVICE_COMPONENT_ID
from services.action.sync_policy.config import SyncPolicySettings
from services.action.sync_policy.diagnostics import (
    build_report,
    check_config,
    check_durable_store,
    check_provider,
    check_skills,
    collect_critical_alerts,
    minimal_config,
)
from services.action.sync_policy.domain import (
    ALERT_ID_PREFIX,
    ALERT_NOT_FOUND,
    SYNC_BLOCKED,
    SYNC_SOURCE_MISSING,
    CheckName,
    ConflictAlert,
    CriticalAlert,
    HealthStatus,
    PolicyStatus,
    ProtectionOutcome,
    RepairResult,
    SyncAction,
    SyncDecision,
    SyncResult,
    WorkspaceHealthReport,
)
from services.action.sync_policy.policy import (
    alert_severity_for,
    alert_type_for,
    decide,
    is_sync_safe,
    strip_fields,
    suggested_action_for,
)
from services.action.sync_policy.service import SyncPolicyService
from services.state.snapshot_store.completeness import (
    CompletenessScore,
    StateStats,
    parse_config_text,
    score_completeness,
)
from services.state.snapshot_store.domain import SnapshotTrigger
from services.state.snapshot_store.service import SnapshotStoreService
from services.state.sync_failure_tracker.service import SyncFailureTrackerService

_LOGGER = get_logger(__name__)
_SOURCE = str(SERVICE_COMPONENT_ID)
_ALERTS = TypeAdapter(list[ConflictAlert])


class SyncSourceMissingError(FileNotFoundError):
    """Raised internally when the live configuration file is absent."""


class _StateView(NamedTuple):
    """Parsed configuration plus completeness score for one side of a sync."""

    config: dict[str, Any] | None
    score: CompletenessScore


class _Diagnosis(NamedTuple):
    """Workspace report plus the observations it was built from."""

    report: WorkspaceHealthReport
    config: dict[str, Any] | None
    config_present: bool
    store_mounted: bool


class DefaultSyncPolicyService(SyncPolicyService):
    """Sync guard comparing the live workspace with its durable backup.

    Conflict alerts persist in the durable store as one capped JSON array,
    most recent first. The failure tracker and notification hub are optional.
    """

    def __init__(
        self,
        *,
        settings: SyncPolicySettings,
        durable_store: DurableStoreSubstrate,
        workspace: WorkspaceSubstrate,
        snapshot_store: SnapshotStoreService,
        failure_tracker: SyncFailureTrackerService | None = None,
        notification_hub: NotificationHubService | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._durable = durable_store
        self._workspace = workspace
        self._snapshots = snapshot_store
        self._tracker = failure_tracker
        self._hub = notification_hub
        self._clock = clock

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def validate(self, *, meta: EnvelopeMeta) -> Envelope[SyncDecision]:
        """Score live and backup state and decide allow, warn, or block."""
        errors = await self._preflight(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            decision = await self._decide()
        except OSError as exc:
            return failure(meta=meta, errors=[_operation_failed("validate", exc)])
        _LOGGER.info(
            "sync validated: action=%s rule=%s local_score=%d remote_score=%d",
            decision.action.value,
            decision.rule.value,
            decision.local_score.score,
            decision.remote_score.score,
        )
        return success(meta=meta, payload=decision)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def handle_dangerous(
        self, *, meta: EnvelopeMeta, decision: SyncDecision
    ) -> Envelope[ProtectionOutcome]:
        """Snapshot, record an alert, and report whether the sync is blocked.

        An ``allow`` decision is a no-op. Snapshot failures are logged and do
        not stop the alert from being recorded.
        """
        errors = await self._preflight(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            outcome = await self._protect(meta=meta, decision=decision)
        except (OSError, ValueError) as exc:
            return failure(
                meta=meta, errors=[_operation_failed("handle_dangerous", exc)]
            )
        return success(meta=meta, payload=outcome)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def sync(
        self,
        *,
        meta: EnvelopeMeta,
        force: bool = False,
        skip_validation: bool = False,
    ) -> Envelope[SyncResult]:
        """Validate and, unless blocked, mirror live state into the backup."""
        errors = await self._preflight(meta)
        if errors:
            if errors[0].category is ErrorCategory.DEPENDENCY:
                await self._record_outcome(meta=meta, error=errors[0].message)
            return failure(meta=meta, errors=errors)

        decision: SyncDecision | None = None
        outcome = ProtectionOutcome(blocked=False)
        try:
            if self._settings.enabled and not skip_validation:
                decision = await self._decide()
                if decision.action is not SyncAction.ALLOW:
                    outcome = await self._protect(meta=meta, decision=decision)
        except (OSError, ValueError) as exc:
            await self._record_outcome(meta=meta, error=str(exc))
            return failure(meta=meta, errors=[_operation_failed("sync", exc)])

        if outcome.blocked and not force:
            _LOGGER.warning(
                "sync blocked: reason=%s snapshot_id=%s alert_id=%s",
                decision.reason if decision else "",
                outcome.snapshot_id,
                outcome.alert_id,
            )
            return failure(
                meta=meta,
                errors=[
                    policy_error(
                        f"Sync blocked: {decision.reason if decision else 'unsafe'}",
                        code=SYNC_BLOCKED,
                        metadata={
                            key: value
                            for key, value in (
                                ("alert_id", outcome.alert_id),
                                ("snapshot_id", outcome.snapshot_id),
                            )
                            if value is not None
                        },
                    )
                ],
                payload=SyncResult(
                    success=False,
                    validation=decision,
                    blocked=True,
                    snapshot_id=outcome.snapshot_id,
                    alert_id=outcome.alert_id,
                ),
            )
        if outcome.blocked:
            _LOGGER.warning("blocked sync forced by caller")

        try:
            last_sync, sanitized = await self._mirror()
        except SyncSourceMissingError as exc:
            await self._record_outcome(meta=meta, error=str(exc))
            return failure(
                meta=meta,
                errors=[policy_error(str(exc), code=SYNC_SOURCE_MISSING)],
            )
        except (OSError, ValueError) as exc:
            await self._record_outcome(meta=meta, error=str(exc))
            return failure(meta=meta, errors=[_operation_failed("sync", exc)])

        await self._record_outcome(meta=meta, error=None)
        _LOGGER.info(
            "sync completed: last_sync=%s sanitized=%d", last_sync, len(sanitized)
        )
        return success(
            meta=meta,
            payload=SyncResult(
                success=True,
                last_sync=last_sync,
                sanitized=tuple(sanitized),
                validation=decision,
                snapshot_id=outcome.snapshot_id,
                alert_id=outcome.alert_id,
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def list_alerts(
        self, *, meta: EnvelopeMeta, include_resolved: bool = False
    ) -> Envelope[list[ConflictAlert]]:
        """List recorded conflict alerts, most recent first."""
        errors = await self._preflight(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            alerts = await self._load_alerts()
        except OSError as exc:
            return failure(meta=meta, errors=[_operation_failed("list_alerts", exc)])
        if not include_resolved:
            alerts = [alert for alert in alerts if not alert.resolved]
        return success(meta=meta, payload=alerts)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("alert_id",),
    )
    async def resolve_alert(
        self,
        *,
        meta: EnvelopeMeta,
        alert_id: str,
        resolved_by: Literal["user", "auto"] = "user",
    ) -> Envelope[ConflictAlert]:
        """Mark one conflict alert resolved; resolving twice keeps the first record."""
        if resolved_by not in ("user", "auto"):
            return failure(
                meta=meta,
                errors=[
                    validation_error(
                        "resolved_by: must be 'user' or 'auto'",
                        code=codes.INVALID_ARGUMENT,
                    )
                ],
            )
        errors = await self._preflight(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            alerts = await self._load_alerts()
            index = next(
                (position for position, item in enumerate(alerts) if item.id == alert_id),
                None,
            )
            if index is None:
                return failure(
                    meta=meta,
                    errors=[
                        not_found_error(
                            "conflict alert not found",
                            code=ALERT_NOT_FOUND,
                            metadata={"alert_id": alert_id},
                        )
                    ],
                )
            alert = alerts[index]
            if not alert.resolved:
                alert = alert.model_copy(
                    update={
                        "resolved": True,
                        "resolved_at": self._clock(),
                        "resolved_by": resolved_by,
                    }
                )
                alerts[index] = alert
                await self._save_alerts(alerts)
                _LOGGER.info(
                    "conflict alert resolved: alert_id=%s resolved_by=%s",
                    alert_id,
                    resolved_by,
                )
        except OSError as exc:
            return failure(meta=meta, errors=[_operation_failed("resolve_alert", exc)])
        return success(meta=meta, payload=alert)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def status(self, *, meta: EnvelopeMeta) -> Envelope[PolicyStatus]:
        """Return current scores, sync safety, and alert bookkeeping."""
        errors = await self._preflight(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            local = await self._local_view()
            remote = await self._remote_view()
            alerts = await self._load_alerts()
            last_sync = await self._durable.read_text(self._settings.last_sync_filename)
        except OSError as exc:
            return failure(meta=meta, errors=[_operation_failed("status", exc)])
        return success(
            meta=meta,
            payload=PolicyStatus(
                local_score=local.score,
                remote_score=remote.score,
                sync_safe=is_sync_safe(local.score, remote.score, self._settings),
                pending_alerts=sum(1 for alert in alerts if not alert.resolved),
                last_sync_time=last_sync.strip() if last_sync else None,
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def diagnose(self, *, meta: EnvelopeMeta) -> Envelope[WorkspaceHealthReport]:
        """Diagnose the live workspace; an unmounted store is a finding."""
        errors = _meta_errors(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            diagnosis = await self._diagnose()
        except OSError as exc:
            return failure(meta=meta, errors=[_operation_failed("diagnose", exc)])
        _LOGGER.info(
            "workspace diagnosed: overall=%s issues=%d",
            diagnosis.report.overall.value,
            len(diagnosis.report.issues),
        )
        return success(meta=meta, payload=diagnosis.report)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def critical_alerts(
        self, *, meta: EnvelopeMeta
    ) -> Envelope[list[CriticalAlert]]:
        """List setup gaps that keep the assistant from working."""
        errors = _meta_errors(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            config = parse_config_text(
                await _decoded(self._workspace.read_config_text(), side="live")
            )
            mounted = await self._durable.ensure_mounted()
        except OSError as exc:
            return failure(
                meta=meta, errors=[_operation_failed("critical_alerts", exc)]
            )
        return success(
            meta=meta, payload=collect_critical_alerts(config, store_mounted=mounted)
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def repair(self, *, meta: EnvelopeMeta) -> Envelope[RepairResult]:
        """Apply automatic fixes for repairable issues, then diagnose again.

        An unusable configuration is snapshotted (when the store is mounted)
        before it is reset to minimal defaults. A configuration that only lacks
        a gateway section keeps everything else.
        """
        errors = _meta_errors(meta)
        if errors:
            return failure(meta=meta, errors=errors)
        try:
            before = await self._diagnose()
        except OSError as exc:
            return failure(meta=meta, errors=[_operation_failed("repair", exc)])

        repaired: list[str] = []
        failed: list[str] = []
        snapshot_id: str | None = None
        for issue in before.report.issues:
            if not issue.auto_repair_available:
                continue
            try:
                if issue.check is CheckName.CONFIG_VALID:
                    step, snapshot_id = await self._repair_config(
                        meta=meta, diagnosis=before
                    )
                else:
                    await self._workspace.ensure_directory(TrackedGroup.SKILLS)
                    step = "Created skills directory"
            except (OSError, TypeError, ValueError) as exc:
                _LOGGER.warning(
                    "workspace repair step failed: check=%s exception_type=%s",
                    issue.check.value,
                    type(exc).__name__,
                    exc_info=exc,
                )
                failed.append(f"{issue.check.value}: {exc}")
            else:
                repaired.append(step)

        try:
            after = await self._diagnose()
        except OSError as exc:
            return failure(meta=meta, errors=[_operation_failed("repair", exc)])
        _LOGGER.info(
            "workspace repair finished: repaired=%d failed=%d overall=%s",
            len(repaired),
            len(failed),
            after.report.overall.value,
        )
        return success(
            meta=meta,
            payload=RepairResult(
                success=not failed,
                repaired=tuple(repaired),
                failed=tuple(failed),
                error=f"Failed to repair {len(failed)} issue(s)" if failed else None,
                snapshot_id=snapshot_id,
                report=after.report,
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return sync policy and substrate readiness."""
        durable = self._durable.health()
        workspace = self._workspace.health()
        return success(
            meta=meta,
            payload=HealthStatus(
                service_ready=True,
                durable_store_ready=durable.ready,
                workspace_ready=workspace.ready,
                detail=(
                    "ok"
                    if durable.ready and workspace.ready
                    else f"durable_store={durable.detail}; workspace={workspace.detail}"
                ),
            ),
        )

    async def _decide(self) -> SyncDecision:
        local = await self._local_view()
        remote = await self._remote_view()
        return decide(
            local_config=local.config,
            remote_config=remote.config,
            local_score=local.score,
            remote_score=remote.score,
            settings=self._settings,
        )

    async def _protect(
        self, *, meta: EnvelopeMeta, decision: SyncDecision
    ) -> ProtectionOutcome:
        """Apply protection for a warn or block decision."""
        if decision.action is SyncAction.ALLOW:
            return ProtectionOutcome(blocked=False)

        snapshot_id = None
        if self._settings.auto_snapshot_on_danger:
            snapshot_id = await self._protective_snapshot(meta=meta, decision=decision)

        alert = ConflictAlert(
            id=generate_prefixed_id(ALERT_ID_PREFIX),
            type=alert_type_for(decision),
            severity=alert_severity_for(decision),
            timestamp=self._clock(),
            description=decision.reason,
            local_score=decision.local_score.score,
            remote_score=decision.remote_score.score,
            suggested_action=suggested_action_for(decision),
        )
        alerts = await self._load_alerts()
        await self._save_alerts([alert, *alerts])
        _LOGGER.warning(
            "conflict alert recorded: alert_id=%s type=%s severity=%s",
            alert.id,
            alert.type.value,
            alert.severity.value,
        )

        blocked = (
            self._settings.auto_block_empty_sync
            and decision.action is SyncAction.BLOCK
        )
        await self._notify(
            meta=meta,
            type=NotificationType.CONFLICT_DETECTED,
            severity=(
                Severity.CRITICAL
                if decision.action is SyncAction.BLOCK
                else Severity.WARNING
            ),
            title="Sync blocked" if blocked else "Sync conflict detected",
            message=decision.reason,
            data={
                "alertId": alert.id,
                "snapshotId": snapshot_id,
                "action": decision.action.value,
                "localScore": decision.local_score.score,
                "remoteScore": decision.remote_score.score,
            },
        )
        return ProtectionOutcome(
            blocked=blocked, snapshot_id=snapshot_id, alert_id=alert.id
        )

    async def _protective_snapshot(
        self, *, meta: EnvelopeMeta, decision: SyncDecision
    ) -> str | None:
        return await self._safety_snapshot(
            meta=meta,
            description=(
                "Auto snapshot before dangerous sync "
                f"(score: {decision.local_score.score} → "
                f"{decision.remote_score.score})"
            ),
        )

    async def _safety_snapshot(
        self, *, meta: EnvelopeMeta, description: str
    ) -> str | None:
        """Best-effort auto-protection snapshot; ``None`` when it fails."""
        created = await self._snapshots.create(
            meta=child_meta(meta, source=_SOURCE),
            trigger=SnapshotTrigger.AUTO_PROTECTION,
            description=description,
        )
        if not created.ok or created.value is None:
            _LOGGER.warning(
                "auto-protection snapshot failed: errors=%s",
                [item.code for item in created.errors],
            )
            return None
        return created.value.id

    async def _mirror(self) -> tuple[str, list[str]]:
        """Strip env-only fields and copy live config and skills into the backup."""
        text = await _decoded(self._workspace.read_config_text(), side="live")
        if text is None:
            raise SyncSourceMissingError(
                f"live configuration not found: {self._workspace.config_filename}"
            )
        config = parse_config_text(text)
        sanitized: list[str] = []
        if config is not None:
            stripped, sanitized = strip_fields(config, self._settings.env_only_fields)
            if sanitized:
                await self._workspace.write_config(stripped)
                _LOGGER.info("env-only fields stripped: fields=%s", sanitized)

        await self._durable.copy_in(
            self._workspace.config_dir,
            self._settings.backup_dirname,
            directory=True,
            replace=True,
            exclude=self._settings.sync_exclude,
        )
        await self._durable.copy_in(
            self._workspace.group_path(TrackedGroup.SKILLS),
            self._settings.skills_dirname,
            directory=True,
            replace=True,
        )
        last_sync = self._clock().isoformat(timespec="seconds")
        await self._durable.write_text(self._settings.last_sync_filename, text=last_sync)
        return last_sync, sanitized

    async def _diagnose(self) -> _Diagnosis:
        text = await _decoded(self._workspace.read_config_text(), side="live")
        config = parse_config_text(text)
        mounted = await self._durable.ensure_mounted()
        skills_exist = await self._workspace.group_exists(TrackedGroup.SKILLS)
        skills_count = (
            (await self._workspace.measure(TrackedGroup.SKILLS)).count
            if skills_exist
            else 0
        )
        report = build_report(
            [
                check_config(text),
                check_provider(config),
                check_durable_store(mounted),
                check_skills(exists=skills_exist, count=skills_count),
            ],
            timestamp=self._clock(),
        )
        return _Diagnosis(report, config, text is not None, mounted)

    async def _repair_config(
        self, *, meta: EnvelopeMeta, diagnosis: _Diagnosis
    ) -> tuple[str, str | None]:
        """Fix the live configuration; returns the step label and any snapshot id."""
        gateway = {
            "port": self._settings.repair_gateway_port,
            "mode": self._settings.repair_gateway_mode,
        }
        if diagnosis.config is not None:
            await self._workspace.write_config({**diagnosis.config, "gateway": gateway})
            return "Added default gateway section", None

        snapshot_id = None
        if diagnosis.config_present and diagnosis.store_mounted:
            snapshot_id = await self._safety_snapshot(
                meta=meta, description="Auto snapshot before configuration reset"
            )
        workspace_dir = self._workspace.group_path(TrackedGroup.SKILLS).parent
        await self._workspace.write_config(
            minimal_config(workspace_dir=str(workspace_dir), gateway=gateway)
        )
        return "Reset configuration to minimal defaults", snapshot_id

    async def _record_outcome(self, *, meta: EnvelopeMeta, error: str | None) -> None:
        """Report one sync outcome to the failure tracker and hub when wired."""
        if self._tracker is not None:
            tracker_meta = child_meta(meta, source=_SOURCE)
            if error is None:
                await self._tracker.record_success(meta=tracker_meta)
            else:
                recorded = await self._tracker.record_failure(
                    meta=tracker_meta, error=error
                )
                outcome = recorded.value
                if recorded.ok and outcome is not None and outcome.should_alert:
                    await self._tracker.emit_alert(
                        meta=tracker_meta,
                        consecutive_failures=outcome.consecutive_failures,
                        last_error=error,
                    )
        if error is None:
            await self._notify(
                meta=meta,
                type=NotificationType.SYNC_COMPLETED,
                severity=Severity.INFO,
                title="Backup sync completed",
                message="Live configuration mirrored to the durable backup",
            )
        else:
            await self._notify(
                meta=meta,
                type=NotificationType.SYNC_FAILED,
                severity=Severity.CRITICAL,
                title="Backup sync failed",
                message=error,
            )

    async def _notify(
        self,
        *,
        meta: EnvelopeMeta,
        type: NotificationType,
        severity: Severity,
        title: str,
        message: str,
        data: dict[str, object] | None = None,
    ) -> None:
        if self._hub is None:
            return
        added = await self._hub.add(
            meta=child_meta(meta, source=_SOURCE),
            type=type,
            title=title,
            message=message,
            severity=severity,
            data=data,
        )
        if not added.ok:
            _LOGGER.warning("sync notification dropped: type=%s", type.value)

    async def _local_view(self) -> _StateView:
        config = parse_config_text(
            await _decoded(self._workspace.read_config_text(), side="live")
        )
        stats = StateStats(
            devices_count=(await self._workspace.measure(TrackedGroup.DEVICES)).count,
            conversations_count=(
                await self._workspace.measure(TrackedGroup.CONVERSATIONS)
            ).count,
        )
        return _StateView(config, score_completeness(config, stats))

    async def _remote_view(self) -> _StateView:
        backup = self._settings.backup_dirname
        config = parse_config_text(
            await _decoded(
                self._durable.read_text(backup, self._workspace.config_filename),
                side="backup",
            )
        )
        stats = StateStats(
            devices_count=(
                await self._durable.measure(
                    backup, self._workspace.group_path(TrackedGroup.DEVICES).name
                )
            ).count,
            conversations_count=(
                await self._durable.measure(
                    backup, self._workspace.group_path(TrackedGroup.CONVERSATIONS).name
                )
            ).count,
        )
        return _StateView(config, score_completeness(config, stats))

    async def _load_alerts(self) -> list[ConflictAlert]:
        """Load persisted alerts; a missing or corrupt file reads as empty."""
        try:
            raw = await self._durable.read_json(self._settings.alerts_filename)
        except ValueError:
            _LOGGER.warning("conflict alerts file is corrupt; treating as empty")
            return []
        if raw is None:
            return []
        try:
            return list(_ALERTS.validate_python(raw))
        except ValidationError:
            _LOGGER.warning("conflict alerts file is malformed; treating as empty")
            return []

    async def _save_alerts(self, alerts: list[ConflictAlert]) -> None:
        await self._durable.write_json(
            self._settings.alerts_filename,
            value=[alert.to_json() for alert in alerts[: self._settings.max_alerts]],
        )

    async def _preflight(self, meta: EnvelopeMeta) -> list[ErrorDetail]:
        """Validate metadata, then require a mounted durable store."""
        errors = _meta_errors(meta)
        if errors:
            return errors
        if not await self._durable.ensure_mounted():
            return [
                dependency_error(
                    "durable store is not available",
                    code=codes.DEPENDENCY_UNAVAILABLE,
                    metadata={"resource": "substrate_durable_store"},
                )
            ]
        return []


def _meta_errors(meta: EnvelopeMeta) -> list[ErrorDetail]:
    try:
        validate_meta(meta)
    except ValueError as exc:
        return [validation_error(str(exc), code=codes.INVALID_ARGUMENT)]
    return []


def _operation_failed(operation: str, exc: Exception) -> ErrorDetail:
    _LOGGER.warning(
        "sync policy operation failed: operation=%s exception_type=%s",
        operation,
        type(exc).__name__,
        exc_info=exc,
    )
    return internal_error(
        f"{operation} failed: {exc}",
        code=codes.OPERATION_FAILED,
        metadata={"operation": operation, "exception_type": type(exc).__name__},
    )


async def _decoded(read: Awaitable[str | None], *, side: str) -> str | None:
    """Await one configuration read; undecodable bytes read as empty text."""
    try:
        return await read
    except UnicodeDecodeError:
        _LOGGER.warning(
            "configuration is not valid UTF-8; treating as malformed: side=%s", side
        )
        return ""
