"""Component declaration for Evolution Workflow Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)

SERVICE_COMPONENT_ID = ComponentId("service_evolution_workflow")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.evolution_workflow")}),
        public_api_roots=frozenset(
            {ModuleRoot("services.action.evolution_workflow.service")}
        ),
        depends_on=frozenset(
            {
                ComponentId("service_snapshot_store"),
                ComponentId("service_notification_hub"),
                ComponentId("substrate_workspace"),
            }
        ),
    )
)


def build_component(
    *, settings: GuardSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    from services.action.evolution_workflow.service import (
        build_evolution_workflow_service,
    )

    return build_evolution_workflow_service(
        settings=settings,
        snapshot_store=components.get("service_snapshot_store"),
        notification_hub=components.get("service_notification_hub"),
        workspace=components.get("substrate_workspace"),
    )
