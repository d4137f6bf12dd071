"""Workspace diagnostics, critical alerts, and repair tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from packages.guard_shared.envelope import EnvelopeKind, EnvelopeMeta, new_meta
from resources.substrates.durable_store import (
    DurableStoreSettings,
    LocalDurableStoreSubstrate,
)
from resources.substrates.workspace import LocalWorkspaceSubstrate, WorkspaceSettings
from services.action.sync_policy.api import register_routes
from services.action.sync_policy.config import SyncPolicySettings
from services.action.sync_policy.diagnostics import (
    build_report,
    check_config,
    check_durable_store,
    check_provider,
    check_skills,
    collect_critical_alerts,
)
from services.action.sync_policy.domain import (
    CheckName,
    CheckStatus,
    CriticalAlertType,
)
from services.action.sync_policy.implementation import DefaultSyncPolicyService
from services.state.snapshot_store.config import SnapshotStoreSettings
from services.state.snapshot_store.domain import SnapshotTrigger
from services.state.snapshot_store.implementation import DefaultSnapshotStoreService

_NOW = datetime(2026, 5, 2, 9, 30, tzinfo=UTC)
_HEALTHY = {
    "gateway": {"port": 18789, "auth": {"token": "secret"}},
    "channels": {"telegram": {"botToken": "123:abc"}, "discord": {"token": "d"}},
    "models": {"providers": {"anthropic": {"apiKey": "sk-ant"}}},
}


def _meta() -> EnvelopeMeta:
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="operator")


class _Rig:
    """Sync policy over a temporary workspace and optional durable mount."""

    def __init__(
        self, root: Path, *, mounted: bool = True, skills: bool = True
    ) -> None:
        self.mount = root / "mount"
        self.config_dir = root / "live" / ".clawdbot"
        self.skills_dir = root / "live" / "skills"
        self.config_dir.mkdir(parents=True)
        if skills:
            self.skills_dir.mkdir()
        if mounted:
            self.mount.mkdir()

        durable = LocalDurableStoreSubstrate(
            settings=DurableStoreSettings(mount_path=str(self.mount), fsync_writes=False)
        )
        workspace = LocalWorkspaceSubstrate(
            settings=WorkspaceSettings(
                config_dir=str(self.config_dir), skills_dir=str(self.skills_dir)
            )
        )
        self.snapshots = DefaultSnapshotStoreService(
            settings=SnapshotStoreSettings(),
            durable_store=durable,
            workspace=workspace,
            clock=lambda: _NOW,
        )
        self.policy = DefaultSyncPolicyService(
            settings=SyncPolicySettings(),
            durable_store=durable,
            workspace=workspace,
            snapshot_store=self.snapshots,
            clock=lambda: _NOW,
        )

    @property
    def config_file(self) -> Path:
        return self.config_dir / "clawdbot.json"

    def write_live(self, config: dict) -> None:
        self.config_file.write_text(json.dumps(config), encoding="utf-8")

    def live(self) -> dict:
        return json.loads(self.config_file.read_text(encoding="utf-8"))


def test_healthy_config_check_lists_channels_in_order() -> None:
    item = check_config(json.dumps(_HEALTHY))

    assert item.status is CheckStatus.HEALTHY
    assert item.details["channels"] == ["telegram", "discord"]
    assert item.details["hasGateway"] is True
    assert item.details["hasAgents"] is False


def test_config_check_grades_missing_invalid_and_partial() -> None:
    assert check_config(None).status is CheckStatus.UNHEALTHY
    assert check_config("{oops").message == "Configuration file contains invalid JSON"
    partial = check_config('{"channels": {}}')
    assert partial.status is CheckStatus.DEGRADED
    assert partial.can_repair is True


def test_report_overall_follows_issue_severity() -> None:
    healthy = [
        check_config(json.dumps(_HEALTHY)),
        check_provider(_HEALTHY),
        check_durable_store(True),
        check_skills(exists=True, count=2),
    ]
    assert build_report(healthy, timestamp=_NOW).overall is CheckStatus.HEALTHY

    no_skills = [*healthy[:3], check_skills(exists=False, count=0)]
    degraded = build_report(no_skills, timestamp=_NOW)
    assert degraded.overall is CheckStatus.DEGRADED
    assert [issue.severity for issue in degraded.issues] == ["warning"]
    assert degraded.auto_repair_available is True

    no_provider = [healthy[0], check_provider({}), *healthy[2:]]
    unhealthy = build_report(no_provider, timestamp=_NOW)
    assert unhealthy.overall is CheckStatus.UNHEALTHY
    assert unhealthy.issues[0].check is CheckName.PROVIDER_CONFIGURED
    assert unhealthy.auto_repair_available is False


def test_critical_alerts_cover_key_token_and_store() -> None:
    alerts = collect_critical_alerts({"channels": {}}, store_mounted=False)

    assert [alert.type for alert in alerts] == [
        CriticalAlertType.MISSING_API_KEY,
        CriticalAlertType.MISSING_GATEWAY_TOKEN,
        CriticalAlertType.DURABLE_STORE_UNAVAILABLE,
    ]
    assert alerts[0].severity == "error"
    assert collect_critical_alerts(_HEALTHY, store_mounted=True) == []


@pytest.mark.asyncio
async def test_diagnose_healthy_workspace(tmp_path: Path) -> None:
    rig = _Rig(tmp_path)
    rig.write_live(_HEALTHY)
    (rig.skills_dir / "weather.md").write_text("skill", encoding="utf-8")

    result = await rig.policy.diagnose(meta=_meta())

    assert result.ok
    report = result.value
    assert report.overall is CheckStatus.HEALTHY
    assert report.issues == ()
    assert [item.name for item in report.checks] == list(CheckName)
    assert report.checks[-1].details == {"skillCount": 1}
    assert report.timestamp == _NOW


@pytest.mark.asyncio
async def test_diagnose_reports_unmounted_store_and_undecodable_config(
    tmp_path: Path,
) -> None:
    rig = _Rig(tmp_path, mounted=False)
    rig.config_file.write_bytes(b"\xff\xfe{bad")

    result = await rig.policy.diagnose(meta=_meta())

    assert result.ok
    statuses = {item.name: item.status for item in result.value.checks}
    assert statuses[CheckName.CONFIG_VALID] is CheckStatus.UNHEALTHY
    assert statuses[CheckName.DURABLE_STORE_CONNECTED] is CheckStatus.UNHEALTHY
    assert result.value.overall is CheckStatus.UNHEALTHY


@pytest.mark.asyncio
async def test_repair_resets_unusable_config_after_snapshot(tmp_path: Path) -> None:
    rig = _Rig(tmp_path, skills=False)
    rig.config_file.write_text("{not json", encoding="utf-8")

    result = await rig.policy.repair(meta=_meta())

    assert result.ok
    repair = result.value
    assert repair.success is True
    assert repair.repaired == (
        "Reset configuration to minimal defaults",
        "Created skills directory",
    )
    assert rig.live() == {
        "agents": {"defaults": {"workspace": str(tmp_path / "live")}},
        "gateway": {"port": 18789, "mode": "local"},
        "channels": {},
    }
    assert rig.skills_dir.is_dir()

    snapshots = (await rig.snapshots.list_snapshots(meta=_meta())).value
    assert [item.id for item in snapshots] == [repair.snapshot_id]
    assert snapshots[0].trigger is SnapshotTrigger.AUTO_PROTECTION

    statuses = {item.name: item.status for item in repair.report.checks}
    assert statuses[CheckName.CONFIG_VALID] is CheckStatus.HEALTHY
    assert statuses[CheckName.SKILLS_ACCESSIBLE] is CheckStatus.HEALTHY
    assert statuses[CheckName.PROVIDER_CONFIGURED] is CheckStatus.UNHEALTHY


@pytest.mark.asyncio
async def test_repair_adds_gateway_without_dropping_channels(tmp_path: Path) -> None:
    rig = _Rig(tmp_path)
    config = {key: value for key, value in _HEALTHY.items() if key != "gateway"}
    rig.write_live(config)

    result = await rig.policy.repair(meta=_meta())

    assert result.ok
    assert result.value.repaired == ("Added default gateway section",)
    assert result.value.snapshot_id is None
    assert rig.live() == {**config, "gateway": {"port": 18789, "mode": "local"}}
    assert result.value.report.overall is CheckStatus.HEALTHY


@pytest.mark.asyncio
async def test_repair_reports_failed_steps(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    rig = _Rig(tmp_path, skills=False)
    rig.write_live(_HEALTHY)

    async def _refuse(group: object) -> None:
        raise PermissionError("read-only file system")

    workspace = rig.policy._workspace  # noqa: SLF001
    monkeypatch.setattr(workspace, "ensure_directory", _refuse)

    result = await rig.policy.repair(meta=_meta())

    assert result.ok
    assert result.value.success is False
    assert result.value.failed == ("skills_accessible: read-only file system",)
    assert result.value.error == "Failed to repair 1 issue(s)"


def test_health_routes_serve_report_alerts_and_repair(tmp_path: Path) -> None:
    rig = _Rig(tmp_path, skills=False)
    rig.write_live(_HEALTHY)
    app = FastAPI()
    router = APIRouter()
    register_routes(router=router, service=rig.policy)
    app.include_router(router)
    client = TestClient(app)

    workspace = client.get("/health/workspace")
    alerts = client.get("/health/alerts")
    repaired = client.post("/health/repair")

    assert workspace.status_code == 200
    assert workspace.json()["overall"] == "degraded"
    assert workspace.json()["issues"][0]["check"] == "skills_accessible"
    assert alerts.json() == {"hasAlerts": False, "alertCount": 0, "alerts": []}
    assert repaired.status_code == 200
    assert repaired.json()["repaired"] == ["Created skills directory"]
    assert repaired.json()["report"]["overall"] == "healthy"
