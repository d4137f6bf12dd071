"""Process entrypoint for the Evolution Guard runtime."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from fastapi import APIRouter, FastAPI

from packages.guard_core.health_api import register_routes
from packages.guard_core.runtime import (
    instantiate_registered_components,
    resolve_service_http_registrar,
)
from packages.guard_shared.component_loader import import_registered_component_modules
from packages.guard_shared.config import GuardSettings, load_settings
from packages.guard_shared.http.server import create_app, run_app
from packages.guard_shared.logging import configure_logging, get_logger
from packages.guard_shared.manifest import get_registry

_LOGGER = get_logger(__name__)
CONFIG_FILE_ENV = "GUARD_CONFIG_FILE"


def build_http_app(
    *, settings: GuardSettings, components: Mapping[str, object]
) -> FastAPI:
    """Create the runtime app and register every service transport adapter."""
    app = create_app(title="Evolution Guard API")
    router = APIRouter()
    register_routes(router=router, settings=settings, components=components)

    registered_services: list[str] = []
    for manifest in sorted(get_registry().list_services(), key=lambda m: str(m.id)):
        registrar = resolve_service_http_registrar(manifest)
        if registrar is None:
            continue
        registrar(router=router, service=components.get(str(manifest.id)))
        registered_services.append(str(manifest.id))

    app.include_router(router)
    _LOGGER.info(
        "HTTP routes registered", extra={"registered_services": registered_services}
    )
    return app


def bootstrap(settings: GuardSettings) -> tuple[dict[str, object], FastAPI]:
    """Register, validate, and build all components plus the HTTP app."""
    imported = import_registered_component_modules()
    registry = get_registry()
    registry.assert_valid()
    _LOGGER.info(
        "component registration completed",
        extra={
            "imported_count": len(imported),
            "service_count": len(registry.list_services()),
            "resource_count": len(registry.list_resources()),
        },
    )
    components = instantiate_registered_components(settings)
    return components, build_http_app(settings=settings, components=components)


def main() -> None:
    """Load settings, build components, and serve until interrupted."""
    config_path = os.getenv(CONFIG_FILE_ENV, "").strip()
    settings = load_settings(config_path=Path(config_path) if config_path else None)
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
    )
    _, app = bootstrap(settings)
    _LOGGER.info(
        "evolution guard startup completed",
        extra={"host": settings.http.host, "port": settings.http.port},
    )
    run_app(
        app,
        host=settings.http.host,
        port=settings.http.port,
        log_level=settings.http.log_level,
    )


if __name__ == "__main__":
    main()
