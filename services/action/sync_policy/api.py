"""FastAPI routes exposing workspace diagnostics from the Sync Policy Service."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from packages.guard_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta, new_meta
from services.action.sync_policy.service import SyncPolicyService


def _meta() -> EnvelopeMeta:
    return new_meta(kind=EnvelopeKind.COMMAND, source="http", principal="admin_ui")


def _errors(result: Envelope[object]) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"errors": [error.message for error in result.errors]},
    )


def register_routes(*, router: APIRouter, service: SyncPolicyService) -> None:
    """Attach workspace health, critical alert, and repair endpoints to ``router``."""

    @router.get("/health/workspace")
    async def workspace_health() -> JSONResponse:
        result = await service.diagnose(meta=_meta())
        report = result.value
        if not result.ok or report is None:
            return _errors(result)
        return JSONResponse(content=report.to_json())

    @router.get("/health/alerts")
    async def workspace_alerts() -> JSONResponse:
        result = await service.critical_alerts(meta=_meta())
        if not result.ok or result.value is None:
            return _errors(result)
        alerts = [alert.to_json() for alert in result.value]
        return JSONResponse(
            content={
                "hasAlerts": bool(alerts),
                "alertCount": len(alerts),
                "alerts": alerts,
            }
        )

    @router.post("/health/repair")
    async def workspace_repair() -> JSONResponse:
        result = await service.repair(meta=_meta())
        if not result.ok or result.value is None:
            return _errors(result)
        return JSONResponse(content=result.value.to_json())
