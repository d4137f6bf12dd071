"""Component declaration for Snapshot Store Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)

SERVICE_COMPONENT_ID = ComponentId("service_snapshot_store")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="state",
        module_roots=frozenset({ModuleRoot("services.state.snapshot_store")}),
        public_api_roots=frozenset(
            {ModuleRoot("services.state.snapshot_store.service")}
        ),
        depends_on=frozenset(
            {
                ComponentId("substrate_durable_store"),
                ComponentId("substrate_workspace"),
            }
        ),
    )
)


def build_component(
    *, settings: GuardSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    from services.state.snapshot_store.service import build_snapshot_store_service

    return build_snapshot_store_service(
        settings=settings,
        durable_store=components.get("substrate_durable_store"),
        workspace=components.get("substrate_workspace"),
    )
