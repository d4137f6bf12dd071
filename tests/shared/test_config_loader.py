"""Tests for pydantic-settings-backed shared configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from packages.guard_shared.config import (
    GuardSettings,
    load_settings,
    resolve_component_settings,
)
from resources.substrates.durable_store.config import DurableStoreSettings
from services.action.evolution_workflow.config import (
    EvolutionMode,
    EvolutionWorkflowSettings,
)
from services.action.sync_policy.component import SERVICE_COMPONENT_ID
from services.action.sync_policy.config import SyncPolicySettings


def test_load_settings_uses_guard_precedence_cascade(tmp_path: Path) -> None:
    """Init params should override env, env should override YAML, then defaults."""
    config_file = tmp_path / "guard.yaml"
    config_file.write_text(
        "\n".join(
            [
                "logging:",
                "  level: WARNING",
                "components:",
                "  substrate:",
                "    durable_store:",
                "      mount_path: /mnt/from-yaml",
                "      mount_max_retries: 7",
                "  service:",
                "    sync_policy:",
                "      min_score_to_sync: 60",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_settings(
        cli_params={"logging": {"level": "DEBUG"}},
        environ={
            "GUARD_LOGGING__LEVEL": "ERROR",
            "GUARD_COMPONENTS__SUBSTRATE__DURABLE_STORE__MOUNT_MAX_RETRIES": "5",
            "GUARD_COMPONENTS__SERVICE__SYNC_POLICY__AUTO_BLOCK_EMPTY_SYNC": "false",
        },
        config_path=config_file,
    )

    durable = resolve_component_settings(
        settings=settings,
        component_id="substrate_durable_store",
        model=DurableStoreSettings,
    )
    policy = resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=SyncPolicySettings,
    )

    assert settings.logging.level == "DEBUG"
    assert durable.mount_path == "/mnt/from-yaml"
    assert durable.mount_max_retries == 5
    assert policy.min_score_to_sync == 60
    assert policy.auto_block_empty_sync is False
    assert policy.blocking_score_diff == 20


def test_load_settings_uses_model_defaults_when_sources_missing(tmp_path: Path) -> None:
    """Settings should fall back to model defaults when env and YAML are absent."""
    settings = load_settings(config_path=tmp_path / "guard.yaml", environ={})
    workflow = resolve_component_settings(
        settings=settings,
        component_id="service_evolution_workflow",
        model=EvolutionWorkflowSettings,
    )

    assert settings.logging.service == "evolution-guard"
    assert settings.logging.level == "INFO"
    assert settings.http.port == 8787
    assert workflow.mode is EvolutionMode.CONFIRM
    assert workflow.approval_ttl_seconds == 300


def test_component_settings_reject_unknown_keys() -> None:
    settings = GuardSettings(
        components={"service": {"sync_policy": {"min_score": 10}}}
    )

    with pytest.raises(ValidationError):
        resolve_component_settings(
            settings=settings,
            component_id="service_sync_policy",
            model=SyncPolicySettings,
        )


def test_flat_component_keys_are_rejected() -> None:
    with pytest.raises(ValidationError, match="components.service.sync_policy"):
        GuardSettings(components={"service_sync_policy": {"enabled": False}})


def test_config_file_must_hold_a_mapping(tmp_path: Path) -> None:
    config_file = tmp_path / "guard.yaml"
    config_file.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="top-level mapping"):
        load_settings(config_path=config_file, environ={})


def test_component_id_must_name_a_namespace() -> None:
    with pytest.raises(ValueError, match="service_\\* or substrate_\\*"):
        resolve_component_settings(
            settings=GuardSettings(),
            component_id="core_http",
            model=SyncPolicySettings,
        )
