"""HTTP adapter for aggregate runtime health."""

from __future__ import annotations

from collections.abc import Mapping

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from packages.guard_core.health import evaluate_core_health
from packages.guard_shared.config import GuardSettings


def register_routes(
    *,
    router: APIRouter,
    settings: GuardSettings,
    components: Mapping[str, object],
) -> None:
    """Attach ``GET /health`` reporting every component's readiness."""

    @router.get("/health")
    async def health() -> JSONResponse:
        result = await evaluate_core_health(
            components=components,
            timeout_seconds=settings.http.health_timeout_seconds,
        )
        return JSONResponse(
            result.model_dump(mode="json"),
            status_code=200 if result.ready else 503,
        )
