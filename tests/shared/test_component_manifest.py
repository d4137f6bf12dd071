"""Tests for component manifests, registry validation, and discovery."""

from __future__ import annotations

from pathlib import Path

import pytest

from packages.guard_shared.component_loader import discover_component_modules
from packages.guard_shared.manifest import (
    ComponentId,
    ManifestError,
    ManifestRegistry,
    ModuleRoot,
    ResourceManifest,
    ServiceManifest,
)


def _service(
    component_id: str = "service_sync_policy",
    *,
    system: str = "action",
    depends_on: frozenset[ComponentId] = frozenset(),
) -> ServiceManifest:
    return ServiceManifest(
        id=ComponentId(component_id),
        layer=1,
        system=system,
        module_roots=frozenset({ModuleRoot(f"services.{system}.{component_id}")}),
        public_api_roots=frozenset({ModuleRoot(f"services.{system}.{component_id}.service")}),
        depends_on=depends_on,
    )


def _resource(component_id: str = "substrate_durable_store") -> ResourceManifest:
    return ResourceManifest(
        id=ComponentId(component_id),
        layer=0,
        system="state",
        module_roots=frozenset({ModuleRoot(f"resources.substrates.{component_id}")}),
        kind="substrate",
    )


def test_registry_lists_state_services_before_action_services() -> None:
    registry = ManifestRegistry()
    registry.register_component(_service("service_sync_policy"))
    registry.register_component(_service("service_snapshot_store", system="state"))
    registry.register_component(_resource())

    assert [str(item.id) for item in registry.list_services()] == [
        "service_snapshot_store",
        "service_sync_policy",
    ]
    assert [str(item.id) for item in registry.list_resources()] == [
        "substrate_durable_store"
    ]


def test_registering_the_same_manifest_twice_is_idempotent() -> None:
    registry = ManifestRegistry()
    registry.register_component(_resource())
    registry.register_component(_resource())

    assert len(registry.list_resources()) == 1


def test_conflicting_duplicate_ids_are_rejected() -> None:
    registry = ManifestRegistry()
    registry.register_component(_service("service_sync_policy"))

    with pytest.raises(ManifestError, match="duplicate component id"):
        registry.register_component(_service("service_sync_policy", system="state"))


def test_assert_valid_names_missing_dependencies() -> None:
    registry = ManifestRegistry()
    registry.register_component(
        _service(
            depends_on=frozenset(
                {ComponentId("substrate_durable_store"), ComponentId("service_missing")}
            )
        )
    )
    registry.register_component(_resource())

    with pytest.raises(ManifestError, match="service_missing"):
        registry.assert_valid()


def test_get_component_raises_for_unknown_id() -> None:
    with pytest.raises(ManifestError, match="component not registered"):
        ManifestRegistry().get_component(ComponentId("service_nope"))


@pytest.mark.parametrize("bad_id", ["Service", "9service", "s", "service-policy"])
def test_invalid_component_ids_are_rejected(bad_id: str) -> None:
    with pytest.raises(ManifestError, match="invalid component id"):
        _resource(bad_id)


def test_service_requires_public_api_roots() -> None:
    with pytest.raises(ManifestError, match="public_api_roots"):
        ServiceManifest(
            id=ComponentId("service_sync_policy"),
            layer=1,
            system="action",
            module_roots=frozenset({ModuleRoot("services.action.sync_policy")}),
            public_api_roots=frozenset(),
        )


def test_discovery_skips_tests_and_unregistered_modules(tmp_path: Path) -> None:
    registered = tmp_path / "services" / "state" / "snapshot_store"
    registered.mkdir(parents=True)
    (registered / "component.py").write_text(
        "MANIFEST = register_component(ServiceManifest())\n", encoding="utf-8"
    )
    fixture = registered / "tests"
    fixture.mkdir()
    (fixture / "component.py").write_text(
        "MANIFEST = register_component(ServiceManifest())\n", encoding="utf-8"
    )
    plain = tmp_path / "resources" / "substrates" / "scratch"
    plain.mkdir(parents=True)
    (plain / "component.py").write_text("VALUE = 1\n", encoding="utf-8")

    assert discover_component_modules(repo_root=tmp_path) == (
        "services.state.snapshot_store.component",
    )


def test_repository_components_are_discovered() -> None:
    modules = set(discover_component_modules())

    assert {
        "resources.substrates.durable_store.component",
        "resources.substrates.workspace.component",
        "services.action.evolution_workflow.component",
        "services.action.notification_hub.component",
        "services.action.sync_policy.component",
        "services.state.snapshot_store.component",
        "services.state.sync_failure_tracker.component",
    } <= modules
