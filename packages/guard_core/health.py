"""Core-level aggregate health evaluation utilities."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.envelope import EnvelopeKind, new_meta
from packages.guard_shared.manifest import ManifestRegistry, get_registry


class ComponentHealthResult(BaseModel):
    """One component-level readiness result."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str = ""


class CoreHealthResult(BaseModel):
    """Aggregate readiness across services and shared resources."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    services: dict[str, ComponentHealthResult] = Field(default_factory=dict)
    resources: dict[str, ComponentHealthResult] = Field(default_factory=dict)


async def evaluate_core_health(
    *,
    components: Mapping[str, object],
    timeout_seconds: float,
    registry: ManifestRegistry | None = None,
) -> CoreHealthResult:
    """Evaluate aggregate health from instantiated components."""
    registry = registry or get_registry()
    service_results = {
        str(manifest.id): await _evaluate_registered(
            components.get(str(manifest.id)), timeout_seconds
        )
        for manifest in registry.list_services()
    }
    resource_results = {
        str(manifest.id): await _evaluate_registered(
            components.get(str(manifest.id)), timeout_seconds
        )
        for manifest in registry.list_resources()
    }
    overall_ready = all(item.ready for item in service_results.values()) and all(
        item.ready for item in resource_results.values()
    )
    return CoreHealthResult(
        ready=overall_ready,
        services=service_results,
        resources=resource_results,
    )


async def _evaluate_registered(
    component: object | None, timeout_seconds: float
) -> ComponentHealthResult:
    if component is None:
        return ComponentHealthResult(ready=False, detail="component not instantiated")
    return await _evaluate_component_health(component, timeout_seconds)


async def _evaluate_component_health(
    component: object, timeout_seconds: float
) -> ComponentHealthResult:
    """Evaluate one component health with global timeout enforcement."""
    health_fn = getattr(component, "health", None)
    if not callable(health_fn):
        return ComponentHealthResult(
            ready=False, detail="component does not expose health()"
        )

    try:
        result = _call_health(health_fn)
        if inspect.isawaitable(result):
            result = await asyncio.wait_for(result, timeout=timeout_seconds)
    except TimeoutError:
        return ComponentHealthResult(
            ready=False,
            detail=f"health() exceeded global max timeout ({timeout_seconds:.3f}s)",
        )
    except Exception as exc:  # noqa: BLE001
        return ComponentHealthResult(
            ready=False, detail=f"health() raised {type(exc).__name__}"
        )

    ready, detail = _coerce_health_result(result)
    return ComponentHealthResult(ready=ready, detail=detail or "ok")


def _call_health(health_fn: Callable[..., object]) -> object:
    if _health_accepts_meta(health_fn):
        return health_fn(
            meta=new_meta(
                kind=EnvelopeKind.RESULT, source="core_health", principal="system"
            )
        )
    return health_fn()


def _health_accepts_meta(health_fn: Callable[..., object]) -> bool:
    """Return True when callable health function accepts ``meta``."""
    try:
        signature = inspect.signature(health_fn)
    except (TypeError, ValueError):
        return False
    parameters = signature.parameters
    if "meta" in parameters:
        return True
    return any(
        parameter.kind == inspect.Parameter.VAR_KEYWORD
        for parameter in parameters.values()
    )


def _coerce_health_result(result: object) -> tuple[bool, str]:
    """Normalize heterogeneous health return shapes into ready/detail."""
    if isinstance(result, bool):
        return result, "ok" if result else "not ready"

    if hasattr(result, "ok") and hasattr(result, "payload"):
        if not result.ok:
            errors = getattr(result, "errors", [])
            return False, errors[0].message if errors else "not ready"
        payload = getattr(result.payload, "value", None)
        if payload is None:
            return True, ""
        return _coerce_health_result(payload)

    if hasattr(result, "model_dump"):
        values = result.model_dump(mode="python")
    elif isinstance(result, dict):
        values = result
    else:
        return False, "health() returned unsupported result"

    detail_value = values.get("detail")
    detail = detail_value if isinstance(detail_value, str) else ""
    ready_value = values.get("ready")
    if isinstance(ready_value, bool):
        return ready_value, detail

    ready_fields = [
        value
        for key, value in values.items()
        if key.endswith("_ready") and isinstance(value, bool)
    ]
    if ready_fields:
        return all(ready_fields), detail
    return False, "health() result missing readiness fields"
