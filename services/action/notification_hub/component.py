"""Component declaration for Notification Hub Service."""

from __future__ import annotations

from collections.abc import Mapping

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ServiceManifest,
    register_component,
)

SERVICE_COMPONENT_ID = ComponentId("service_notification_hub")

MANIFEST = register_component(
    ServiceManifest(
        id=SERVICE_COMPONENT_ID,
        layer=1,
        system="action",
        module_roots=frozenset({ModuleRoot("services.action.notification_hub")}),
        public_api_roots=frozenset(
            {ModuleRoot("services.action.notification_hub.service")}
        ),
    )
)


def build_component(
    *, settings: GuardSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered service component."""
    del components
    from services.action.notification_hub.service import build_notification_hub_service

    return build_notification_hub_service(settings=settings)
