"""Registry walk that builds every component once, in dependency order."""

from __future__ import annotations

import sys
from collections.abc import Callable

from packages.guard_shared.component_loader import (
    import_component_modules,
    import_optional_module,
)
from packages.guard_shared.config import GuardSettings
from packages.guard_shared.logging import get_logger
from packages.guard_shared.manifest import (
    ComponentManifest,
    ManifestRegistry,
    ServiceManifest,
    get_registry,
)

_LOGGER = get_logger(__name__)


def resolve_component_builder(manifest: ComponentManifest) -> Callable[..., object]:
    """Load one component module and return its build callable."""
    for module_root in sorted(manifest.module_roots):
        module_name = f"{module_root}.component"
        import_component_modules((module_name,))
        builder = getattr(sys.modules[module_name], "build_component", None)
        if callable(builder):
            return builder
    raise RuntimeError(
        f"component '{manifest.id}' does not expose build_component(...) in its component module"
    )


def resolve_service_http_registrar(
    manifest: ComponentManifest,
) -> Callable[..., None] | None:
    """Load one optional service-level HTTP registrar from ``api.py``."""
    for module_root in sorted(manifest.module_roots):
        module = import_optional_module(f"{module_root}.api")
        if module is None:
            continue
        registrar = getattr(module, "register_routes", None)
        if callable(registrar):
            return registrar
    return None


def instantiate_registered_components(
    settings: GuardSettings,
    *,
    registry: ManifestRegistry | None = None,
) -> dict[str, object]:
    """Instantiate all registered L0 resources and L1 services by registry walk.

    A service is built only after every component in its ``depends_on`` set,
    so each collaborator is one shared instance injected by reference.
    """
    registry = registry or get_registry()
    pending: list[ComponentManifest] = [
        *registry.list_resources(),
        *registry.list_services(),
    ]
    built: dict[str, object] = {}

    while pending:
        progressed = False
        next_round: list[ComponentManifest] = []
        for manifest in pending:
            if isinstance(manifest, ServiceManifest) and not all(
                str(dependency) in built for dependency in manifest.depends_on
            ):
                next_round.append(manifest)
                continue
            builder = resolve_component_builder(manifest)
            built[str(manifest.id)] = builder(settings=settings, components=built)
            progressed = True
            _LOGGER.info(
                "component instantiated",
                extra={"component_id": str(manifest.id), "layer": manifest.layer},
            )

        if not progressed:
            unresolved = ", ".join(str(item.id) for item in next_round)
            raise RuntimeError(
                "unable to resolve component dependency graph; unresolved components: "
                f"{unresolved}"
            )
        pending = next_round
    return built
