"""Durable store substrate resource exports."""

from resources.substrates.durable_store.component import MANIFEST, RESOURCE_COMPONENT_ID
from resources.substrates.durable_store.config import (
    DurableStoreSettings,
    resolve_durable_store_settings,
)
from resources.substrates.durable_store.durable_store_substrate import (
    LocalDurableStoreSubstrate,
)
from resources.substrates.durable_store.substrate import (
    DurableStoreHealthStatus,
    DurableStoreSubstrate,
)

__all__ = [
    "MANIFEST",
    "RESOURCE_COMPONENT_ID",
    "DurableStoreHealthStatus",
    "DurableStoreSettings",
    "DurableStoreSubstrate",
    "LocalDurableStoreSubstrate",
    "resolve_durable_store_settings",
]
