"""Component declaration for Sync Failure Tracker Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)

SERVICE_COMPONENT_ID = ComponentId("service_sync_failure_tracker")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="state",
        module_roots=frozenset({ModuleRoot("services.state.sync_failure_tracker")}),
        public_api_roots=frozenset(
            {ModuleRoot("services.state.sync_failure_tracker.service")}
        ),
        depends_on=frozenset({ComponentId("substrate_durable_store")}),
    )
)


def build_component(
    *, settings: GuardSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    from services.state.sync_failure_tracker.service import (
        build_sync_failure_tracker_service,
    )

    return build_sync_failure_tracker_service(
        settings=settings,
        durable_store=components.get("substrate_durable_store"),
    )
