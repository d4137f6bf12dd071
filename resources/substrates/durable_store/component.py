"""Component declaration for the durable backing store substrate."""

from __future__ import annotations

from collections.abc import Mapping

from packages.guard_shared.config import GuardSettings
from packages.guard_shared.manifest import (
    ComponentId,
    ModuleRoot,
    ResourceManifest,
    register_component,
)

RESOURCE_COMPONENT_ID = ComponentId("substrate_durable_store")

MANIFEST = register_component(
    ResourceManifest(
        id=RESOURCE_COMPONENT_ID,
        layer=0,
        system="state",
        kind="substrate",
        module_roots=frozenset({ModuleRoot("resources.substrates.durable_store")}),
    )
)


def build_component(
    *, settings: GuardSettings, components: Mapping[str, object]
) -> object:
    """Build concrete runtime instance for this registered resource component."""
    del components
    from resources.substrates.durable_store.config import (
        resolve_durable_store_settings,
    )
    from resources.substrates.durable_store.durable_store_substrate import (
        LocalDurableStoreSubstrate,
    )

    return LocalDurableStoreSubstrate(settings=resolve_durable_store_settings(settings))
