"""Concrete Sync Failure Tracker Service implementation."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from pydantic import ValidationError

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
    dependency_error,
    validation_error,
)
from packages.guard_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from resources.substrates.durable_store import (
    DurableStoreSubstrate,
    LocalDurableStoreSubstrate,
    resolve_durable_store_settings,
)
from services.state.sync_failure_tracker.component import SERVICE_COMPONENT_ID
from services.state.sync_failure_tracker.config import (
    SyncFailureTrackerSettings,
    resolve_sync_failure_tracker_settings,
)
from services.state.sync_failure_tracker.domain import (
    FailureOutcome,
    HealthStatus,
    SyncFailureAlert,
    SyncStatus,
)
from services.state.sync_failure_tracker.service import SyncFailureTrackerService

_LOGGER = get_logger(__name__)
_ALERT_ACTION = "Check durable store connectivity and credentials"


class DefaultSyncFailureTrackerService(SyncFailureTrackerService):
    """Tracker persisting its counter as a JSON document on the durable store."""

    def __init__(
        self,
        *,
        settings: SyncFailureTrackerSettings,
        durable_store: DurableStoreSubstrate,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._durable = durable_store
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: GuardSettings
    ) -> "DefaultSyncFailureTrackerService":
        """Build tracker and its durable store from typed root settings."""
        return cls(
            settings=resolve_sync_failure_tracker_settings(settings),
            durable_store=LocalDurableStoreSubstrate(
                settings=resolve_durable_store_settings(settings)
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def record_failure(
        self, *, meta: EnvelopeMeta, error: str
    ) -> Envelope[FailureOutcome]:
        """Count one failure and report whether an alert is now due.

        Without a usable store nothing can be counted, so every failure is
        reported as alert-worthy.
        """
        meta_error = _validate(meta)
        if meta_error is not None:
            return failure(meta=meta, errors=[meta_error])

        untracked = FailureOutcome(
            should_alert=True, consecutive_failures=1, tracked=False
        )
        if not await self._durable.ensure_mounted():
            _LOGGER.warning("cannot track sync failures without durable store; alerting")
            return success(meta=meta, payload=untracked)

        now = self._clock()
        try:
            status = await self._read_status()
            failures = status.consecutive_failures + 1
            should_alert = failures >= self._settings.failure_threshold and not (
                status.alert_sent
            )
            updated = status.model_copy(
                update={
                    "consecutive_failures": failures,
                    "last_failure_time": now,
                    "last_failure_error": error,
                    "alert_sent": status.alert_sent or should_alert,
                    "alert_sent_at": now if should_alert else status.alert_sent_at,
                }
            )
            await self._write_status(updated)
        except OSError as exc:
            _LOGGER.warning(
                "failed to persist sync failure; alerting", exc_info=exc
            )
            return success(meta=meta, payload=untracked)

        _LOGGER.info(
            "recorded sync failure #%d should_alert=%s", failures, should_alert
        )
        return success(
            meta=meta,
            payload=FailureOutcome(
                should_alert=should_alert, consecutive_failures=failures
            ),
        )

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def record_success(self, *, meta: EnvelopeMeta) -> Envelope[SyncStatus]:
        """Reset the failure counter after a successful sync."""
        meta_error = _validate(meta)
        if meta_error is not None:
            return failure(meta=meta, errors=[meta_error])
        if not await self._durable.ensure_mounted():
            return failure(meta=meta, errors=[_unavailable()])

        try:
            status = await self._read_status()
            updated = status.model_copy(
                update={
                    "consecutive_failures": 0,
                    "last_success_time": self._clock(),
                    "alert_sent": False,
                    "alert_sent_at": None,
                }
            )
            await self._write_status(updated)
        except OSError as exc:
            return failure(meta=meta, errors=[_unavailable(exc)])
        _LOGGER.info("recorded sync success; failure counter reset")
        return success(meta=meta, payload=updated)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def status(self, *, meta: EnvelopeMeta) -> Envelope[SyncStatus]:
        """Return the persisted sync status; defaults when the store is absent."""
        meta_error = _validate(meta)
        if meta_error is not None:
            return failure(meta=meta, errors=[meta_error])
        if not await self._durable.ensure_mounted():
            return success(meta=meta, payload=SyncStatus())
        try:
            return success(meta=meta, payload=await self._read_status())
        except OSError as exc:
            return failure(meta=meta, errors=[_unavailable(exc)])

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def emit_alert(
        self,
        *,
        meta: EnvelopeMeta,
        consecutive_failures: int,
        last_error: str,
    ) -> Envelope[SyncFailureAlert]:
        """Emit one critical structured alert log line for log aggregation."""
        meta_error = _validate(meta)
        if meta_error is not None:
            return failure(meta=meta, errors=[meta_error])
        alert = SyncFailureAlert(
            consecutive_failures=consecutive_failures,
            last_error=last_error,
            timestamp=self._clock(),
            message=f"Durable sync failed {consecutive_failures} times in a row",
            action=_ALERT_ACTION,
        )
        with log_context(
            {
                fields.EVENT: "sync_failure_alert",
                fields.CONSECUTIVE_FAILURES: consecutive_failures,
                "last_error": last_error,
                "action": alert.action,
            }
        ):
            _LOGGER.critical(alert.message)
        return success(meta=meta, payload=alert)

    @public_api_instrumented(logger=_LOGGER, component_id=str(SERVICE_COMPONENT_ID))
    async def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return tracker and durable store readiness."""
        durable = self._durable.health()
        return success(
            meta=meta,
            payload=HealthStatus(
                service_ready=True,
                durable_store_ready=durable.ready,
                detail=durable.detail,
            ),
        )

    async def _read_status(self) -> SyncStatus:
        """Read the status document; missing or unreadable content resets it."""
        try:
            raw = await self._durable.read_json(self._settings.status_filename)
        except ValueError:
            _LOGGER.warning("sync status file is not valid JSON; starting fresh")
            return SyncStatus()
        if raw is None:
            return SyncStatus()
        try:
            return SyncStatus.model_validate(raw)
        except ValidationError:
            _LOGGER.warning("sync status file has unexpected shape; starting fresh")
            return SyncStatus()

    async def _write_status(self, status: SyncStatus) -> None:
        await self._durable.write_json(
            self._settings.status_filename, value=status.to_json()
        )


def _validate(meta: EnvelopeMeta) -> ErrorDetail | None:
    try:
        validate_meta(meta)
    except ValueError as exc:
        return validation_error(str(exc), code=codes.INVALID_ARGUMENT)
    return None


def _unavailable(exc: Exception | None = None) -> ErrorDetail:
    """Build the dependency error used when the status file cannot be used."""
    metadata: dict[str, object] = {"resource": "substrate_durable_store"}
    if exc is not None:
        metadata["exception_type"] = type(exc).__name__
    return dependency_error(
        "durable store is not available",
        code=codes.DEPENDENCY_UNAVAILABLE,
        metadata=metadata,
    )
