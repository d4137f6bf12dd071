"""Concrete Evolution Workflow Service implementation."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Mapping

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
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    not_found_error,
    validation_error,
)
from packages.guard_shared.ids import generate_prefixed_id
from packages.guard_shared.logging import get_logger, public_api_instrumented
from resources.substrates.workspace import WorkspaceSubstrate
from services.action.evolution_workflow.component import SERVICE_COMPONENT_ID
from services.action.evolution_workflow.config import (
    EvolutionMode,
    EvolutionWorkflowSettings,
)
from services.action.evolution_workflow.domain import (
    CONFIG_UNREADABLE,
    EVOLUTION_ID_PREFIX,
    EVOLUTION_NOT_FOUND,
    ROLLBACK_SNAPSHOT_MISSING,
    ApplyResult,
    EvolutionPreview,
    EvolutionRequest,
    EvolutionStatus,
    HealthStatus,
    can_transition,
)
from services.action.evolution_workflow.risk import (
    RiskAnalysis,
    RiskTier,
    analyze_risk,
    render_diff,
)
from services.action.evolution_workflow.service import EvolutionWorkflowService
from services.action.notification_hub.domain import (
    ChangeSummary,
    EvolutionDetails,
    NotificationSource,
    NotificationType,
    PendingStatus,
    Severity,
)
from services.action.notification_hub.service import NotificationHubService
from services.state.snapshot_store.completeness import parse_config_text
from services.state.snapshot_store.domain import SnapshotTrigger
from services.state.snapshot_store.service import SnapshotStoreService

_LOGGER = get_logger(__name__)
_SOURCE = str(SERVICE_COMPONENT_ID)


class ConfigUnreadableError(RuntimeError):
    """Raised internally when the live configuration cannot be parsed."""


class DefaultEvolutionWorkflowService(EvolutionWorkflowService):
    """Request store and state machine for proposed configuration changes.

    Requests live in memory for the process lifetime and are never deleted.
    Pending requests expire lazily: every read of a request first marks any
    request past its deadline as ``expired``.
    """

    def __init__(
        self,
        *,
        settings: EvolutionWorkflowSettings,
        snapshot_store: SnapshotStoreService,
        notification_hub: NotificationHubService,
        workspace: WorkspaceSubstrate,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._snapshots = snapshot_store
        self._hub = notification_hub
        self._workspace = workspace
        self._clock = clock
        self._requests: dict[str, EvolutionRequest] = {}

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def create_request(
        self,
        *,
        meta: EnvelopeMeta,
        proposed: Mapping[str, Any],
        source: NotificationSource | None = None,
        reason: str | None = None,
        auto_approve_if_safe: bool = False,
    ) -> Envelope[EvolutionRequest]:
        """Analyze a proposed configuration and apply it or queue it for approval."""
        error = _validate(meta) or _validate_config(proposed)
        if error is not None:
            return failure(meta=meta, errors=[error])
        try:
            current = await self._load_current()
        except ConfigUnreadableError as exc:
            return failure(meta=meta, errors=[_unreadable(exc)])

        analysis = analyze_risk(current, proposed)
        now = self._clock()
        request = EvolutionRequest(
            id=generate_prefixed_id(EVOLUTION_ID_PREFIX),
            source=source,
            current_config=current,
            proposed_config=dict(proposed),
            analysis=analysis,
            created_at=now,
            updated_at=now,
            reason=reason,
        )

        auto_apply = self._settings.mode is EvolutionMode.AUTO or (
            auto_approve_if_safe and analysis.overall_risk is RiskTier.SAFE
        )
        if auto_apply:
            request = self._advance(request, EvolutionStatus.APPROVED)
            self._requests[request.id] = request
            _LOGGER.info(
                "evolution auto-approved: request_id=%s risk=%s mode=%s",
                request.id,
                analysis.overall_risk.value,
                self._settings.mode.value,
            )
            applied = await self._apply(meta=meta, request=request)
            return success(meta=meta, payload=applied)

        snapshot_id = None
        if self._settings.snapshot_before_approval:
            snapshot_id = await self._protective_snapshot(meta=meta, request_id=request.id)
        request = request.model_copy(
            update={
                "snapshot_id": snapshot_id,
                "expires_at": now + timedelta(seconds=self._settings.approval_ttl_seconds),
            }
        )
        self._requests[request.id] = request

        registered = await self._hub.create_pending_evolution(
            meta=child_meta(meta, source=_SOURCE),
            details=_details(request),
            expires_at=request.expires_at,
            source=source,
        )
        if not registered.ok:
            _LOGGER.warning(
                "pending evolution not registered with hub: request_id=%s errors=%s",
                request.id,
                [item.code for item in registered.errors],
            )
        _LOGGER.info(
            "evolution awaiting approval: request_id=%s risk=%s summary=%s",
            request.id,
            analysis.overall_risk.value,
            analysis.summary,
        )
        return success(meta=meta, payload=request)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("request_id",),
    )
    async def approve(
        self,
        *,
        meta: EnvelopeMeta,
        request_id: str,
        source: NotificationSource | None = None,
    ) -> Envelope[EvolutionRequest]:
        """Approve one pending request."""
        return await self._decide(
            meta=meta,
            request_id=request_id,
            target=EvolutionStatus.APPROVED,
            hub_status=PendingStatus.APPROVED,
            source=source,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("request_id",),
    )
    async def reject(
        self,
        *,
        meta: EnvelopeMeta,
        request_id: str,
        source: NotificationSource | None = None,
    ) -> Envelope[EvolutionRequest]:
        """Reject one pending request."""
        return await self._decide(
            meta=meta,
            request_id=request_id,
            target=EvolutionStatus.REJECTED,
            hub_status=PendingStatus.REJECTED,
            source=source,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("request_id",),
    )
    async def apply(
        self, *, meta: EnvelopeMeta, request_id: str
    ) -> Envelope[EvolutionRequest]:
        """Write an approved request's configuration to the live state."""
        request, error = self._lookup(meta, request_id)
        if error is None:
            error = _require_transition(request, EvolutionStatus.APPLIED)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(meta=meta, payload=await self._apply(meta=meta, request=request))

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("request_id",),
    )
    async def rollback(
        self, *, meta: EnvelopeMeta, request_id: str
    ) -> Envelope[EvolutionRequest]:
        """Restore the protective snapshot of a failed request."""
        request, error = self._lookup(meta, request_id)
        if error is None:
            error = _require_transition(request, EvolutionStatus.ROLLED_BACK)
        if error is None and request.snapshot_id is None:
            error = validation_error(
                f"no snapshot available to roll back {request_id}",
                code=ROLLBACK_SNAPSHOT_MISSING,
                metadata={"request_id": request_id},
            )
        if error is not None:
            return failure(meta=meta, errors=[error])

        restored = await self._snapshots.restore(
            meta=child_meta(meta, source=_SOURCE), snapshot_id=request.snapshot_id
        )
        if not restored.ok:
            _LOGGER.warning(
                "evolution rollback failed: request_id=%s snapshot_id=%s",
                request_id,
                request.snapshot_id,
            )
            return failure(meta=meta, errors=restored.errors)

        rolled_back = self._advance(request, EvolutionStatus.ROLLED_BACK)
        self._requests[request_id] = rolled_back
        await self._notify(
            meta=meta,
            type=NotificationType.EVOLUTION_ROLLED_BACK,
            severity=Severity.WARNING,
            title="Change rolled back",
            message=f"Restored snapshot {request.snapshot_id} after {request_id} failed",
            request=rolled_back,
        )
        return success(meta=meta, payload=rolled_back)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("request_id",),
    )
    async def get_request(
        self, *, meta: EnvelopeMeta, request_id: str
    ) -> Envelope[EvolutionRequest]:
        """Return one request by id."""
        request, error = self._lookup(meta, request_id)
        if error is not None:
            return failure(meta=meta, errors=[error])
        return success(meta=meta, payload=request)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def list_pending(self, *, meta: EnvelopeMeta) -> Envelope[list[EvolutionRequest]]:
        """List unexpired pending requests, newest first."""
        error = _validate(meta)
        if error is not None:
            return failure(meta=meta, errors=[error])
        self._reap_expired()
        return success(
            meta=meta,
            payload=[
                item
                for item in self._newest_first()
                if item.status is EvolutionStatus.PENDING
            ],
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def history(
        self, *, meta: EnvelopeMeta, limit: int | None = None
    ) -> Envelope[list[EvolutionRequest]]:
        """List every request, newest first."""
        error = _validate(meta)
        if error is None and limit is not None and limit < 1:
            error = validation_error(
                "limit: must be positive", code=codes.INVALID_ARGUMENT
            )
        if error is not None:
            return failure(meta=meta, errors=[error])
        self._reap_expired()
        requests = self._newest_first()
        return success(meta=meta, payload=requests if limit is None else requests[:limit])

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def preview(
        self, *, meta: EnvelopeMeta, proposed: Mapping[str, Any]
    ) -> Envelope[EvolutionPreview]:
        """Analyze a proposed configuration without side effects."""
        error = _validate(meta) or _validate_config(proposed)
        if error is not None:
            return failure(meta=meta, errors=[error])
        try:
            current = await self._load_current()
        except ConfigUnreadableError as exc:
            return failure(meta=meta, errors=[_unreadable(exc)])
        analysis = analyze_risk(current, proposed)
        return success(
            meta=meta,
            payload=EvolutionPreview(
                analysis=analysis,
                diff=render_diff(analysis.changes),
                summary=analysis.summary,
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return workflow readiness."""
        workspace = self._workspace.health()
        self._reap_expired()
        pending = sum(
            1 for item in self._requests.values() if item.status is EvolutionStatus.PENDING
        )
        return success(
            meta=meta,
            payload=HealthStatus(
                service_ready=True,
                workspace_ready=workspace.ready,
                pending_requests=pending,
                detail=workspace.detail,
            ),
        )

    async def _decide(
        self,
        *,
        meta: EnvelopeMeta,
        request_id: str,
        target: EvolutionStatus,
        hub_status: PendingStatus,
        source: NotificationSource | None,
    ) -> Envelope[EvolutionRequest]:
        """Move a pending request to an operator disposition."""
        request, error = self._lookup(meta, request_id)
        if error is None:
            error = _require_transition(request, target)
        if error is not None:
            return failure(meta=meta, errors=[error])

        decided = self._advance(request, target)
        self._requests[request_id] = decided
        updated = await self._hub.update_evolution_status(
            meta=child_meta(meta, source=_SOURCE),
            request_id=request_id,
            status=hub_status,
            source=source,
        )
        if not updated.ok:
            _LOGGER.warning(
                "hub did not accept evolution status: request_id=%s status=%s",
                request_id,
                target.value,
            )
        _LOGGER.info("evolution %s: request_id=%s", target.value, request_id)
        return success(meta=meta, payload=decided)

    async def _apply(
        self, *, meta: EnvelopeMeta, request: EvolutionRequest
    ) -> EvolutionRequest:
        """Write the proposed configuration; record the outcome on the request."""
        try:
            await self._workspace.write_config(request.proposed_config)
        except (OSError, TypeError, ValueError) as exc:
            outcome = self._advance(
                request,
                EvolutionStatus.FAILED,
                result=ApplyResult(success=False, error=str(exc)),
            )
            _LOGGER.warning(
                "evolution apply failed: request_id=%s exception_type=%s",
                request.id,
                type(exc).__name__,
            )
            await self._notify(
                meta=meta,
                type=NotificationType.EVOLUTION_FAILED,
                severity=Severity.CRITICAL,
                title="Change failed",
                message=f"Failed to apply {request.id}: {exc}",
                request=outcome,
            )
        else:
            outcome = self._advance(
                request, EvolutionStatus.APPLIED, result=ApplyResult(success=True)
            )
            _LOGGER.info(
                "evolution applied: request_id=%s summary=%s",
                request.id,
                request.analysis.summary,
            )
            await self._notify(
                meta=meta,
                type=NotificationType.EVOLUTION_APPLIED,
                severity=Severity.INFO,
                title="Change applied",
                message=request.analysis.summary,
                request=outcome,
            )
        self._requests[request.id] = outcome
        return outcome

    async def _protective_snapshot(
        self, *, meta: EnvelopeMeta, request_id: str
    ) -> str | None:
        """Best-effort pre-evolution snapshot; ``None`` when it fails."""
        created = await self._snapshots.create(
            meta=child_meta(meta, source=_SOURCE),
            trigger=SnapshotTrigger.PRE_EVOLUTION,
            description=f"Pre-evolution snapshot for {request_id}",
        )
        if not created.ok or created.value is None:
            _LOGGER.warning(
                "pre-evolution snapshot failed: request_id=%s errors=%s",
                request_id,
                [item.code for item in created.errors],
            )
            return None
        return created.value.id

    async def _notify(
        self,
        *,
        meta: EnvelopeMeta,
        type: NotificationType,
        severity: Severity,
        title: str,
        message: str,
        request: EvolutionRequest,
    ) -> None:
        added = await self._hub.add(
            meta=child_meta(meta, source=_SOURCE),
            type=type,
            title=title,
            message=message,
            severity=severity,
            source=request.source,
            data={"requestId": request.id, "status": request.status.value},
        )
        if not added.ok:
            _LOGGER.warning(
                "evolution notification dropped: request_id=%s type=%s",
                request.id,
                type.value,
            )

    async def _load_current(self) -> dict[str, Any]:
        try:
            text = await self._workspace.read_config_text()
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigUnreadableError(f"cannot read current configuration: {exc}") from exc
        current = parse_config_text(text)
        if current is None:
            raise ConfigUnreadableError("cannot load current configuration")
        return current

    def _lookup(
        self, meta: EnvelopeMeta, request_id: str
    ) -> tuple[EvolutionRequest | None, ErrorDetail | None]:
        error = _validate(meta)
        if error is not None:
            return None, error
        self._reap_expired()
        request = self._requests.get(request_id)
        if request is None:
            return None, not_found_error(
                f"evolution request not found: {request_id}",
                code=EVOLUTION_NOT_FOUND,
                metadata={"request_id": request_id},
            )
        return request, None

    def _advance(
        self, request: EvolutionRequest, target: EvolutionStatus, **updates: object
    ) -> EvolutionRequest:
        return request.model_copy(
            update={"status": target, "updated_at": self._clock(), **updates}
        )

    def _reap_expired(self) -> None:
        """Mark pending requests past their deadline as expired."""
        now = self._clock()
        for request_id, request in list(self._requests.items()):
            if (
                request.status is EvolutionStatus.PENDING
                and request.expires_at is not None
                and request.expires_at <= now
            ):
                self._requests[request_id] = self._advance(request, EvolutionStatus.EXPIRED)
                _LOGGER.info("evolution expired: request_id=%s", request_id)

    def _newest_first(self) -> list[EvolutionRequest]:
        return sorted(
            reversed(self._requests.values()),
            key=lambda item: item.created_at,
            reverse=True,
        )


def _validate(meta: EnvelopeMeta) -> ErrorDetail | None:
    try:
        validate_meta(meta)
    except ValueError as exc:
        return validation_error(str(exc), code=codes.INVALID_ARGUMENT)
    return None


def _validate_config(proposed: object) -> ErrorDetail | None:
    if not isinstance(proposed, Mapping):
        return validation_error(
            "proposed: must be a configuration mapping", code=codes.INVALID_ARGUMENT
        )
    return None


def _require_transition(
    request: EvolutionRequest, target: EvolutionStatus
) -> ErrorDetail | None:
    if can_transition(request.status, target):
        return None
    return conflict_error(
        f"cannot move evolution {request.id} from {request.status.value} "
        f"to {target.value}",
        code=codes.INVALID_TRANSITION,
        metadata={
            "request_id": request.id,
            "status": request.status.value,
            "target": target.value,
        },
    )


def _unreadable(exc: ConfigUnreadableError) -> ErrorDetail:
    return dependency_error(str(exc), code=CONFIG_UNREADABLE, retryable=False)


def _details(request: EvolutionRequest) -> EvolutionDetails:
    """Summarize a request for the approval notification."""
    analysis: RiskAnalysis = request.analysis
    primary = analysis.changes[0].dotted_path if analysis.changes else "configuration"
    return EvolutionDetails(
        request_id=request.id,
        target_path=primary,
        risk_level=analysis.overall_risk.value,
        changes=tuple(
            ChangeSummary(
                path=change.dotted_path,
                old_value=change.old_value,
                new_value=change.new_value,
            )
            for change in analysis.changes
        ),
        snapshot_id=request.snapshot_id,
        reason=request.reason,
    )
