"""Component declaration for Sync Policy Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)

SERVICE_COMPONENT_ID = ComponentId("service_sync_policy")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.sync_policy")}),
        public_api_roots=frozenset({ModuleRoot("services.action.sync_policy.service")}),
        depends_on=frozenset(
            {
                ComponentId("substrate_durable_store"),
                ComponentId("substrate_workspace"),
                ComponentId("service_snapshot_store"),
                ComponentId("service_sync_failure_tracker"),
                ComponentId("service_notification_hub"),
            }
        ),
    )
)


def build_component(
    *, settings: GuardSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    from services.action.sync_policy.service import build_sync_policy_service

    return build_sync_policy_service(
        settings=settings,
        durable_store=components.get("substrate_durable_store"),
        workspace=components.get("substrate_workspace"),
        snapshot_store=components.get("service_snapshot_store"),
        failure_tracker=components.get("service_sync_failure_tracker"),
        notification_hub=components.get("service_notification_hub"),
    )
