"""Behavior tests for Snapshot Store Service implementation."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from packages.guard_shared.envelope import EnvelopeKind, EnvelopeMeta, new_meta
from packages.guard_shared.errors import ErrorCategory, codes
from resources.substrates.durable_store import (
    DurableStoreSettings,
    LocalDurableStoreSubstrate,
)
from resources.substrates.workspace import (
    LocalWorkspaceSubstrate,
    TrackedGroup,
    WorkspaceSettings,
)
from services.state.snapshot_store.config import SnapshotStoreSettings
from services.state.snapshot_store.domain import SNAPSHOT_NOT_FOUND, SnapshotTrigger
from services.state.snapshot_store.implementation import DefaultSnapshotStoreService


def _meta() -> EnvelopeMeta:
    """Build valid envelope metadata for snapshot calls."""
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="operator")


class _Layout:
    """Temporary live workspace plus durable mount for one test."""

    def __init__(self, root: Path) -> None:
        self.config_dir = root / "live" / ".clawdbot"
        self.skills_dir = root / "live" / "skills"
        self.mount = root / "mount"
        self.config_dir.mkdir(parents=True)
        self.skills_dir.mkdir(parents=True)
        self.mount.mkdir()

    @property
    def config_file(self) -> Path:
        return self.config_dir / "clawdbot.json"

    def write_config(self, text: str) -> None:
        self.config_file.write_text(text, encoding="utf-8")

    def write_skill(self, name: str, text: str = "skill") -> None:
        (self.skills_dir / name).write_text(text, encoding="utf-8")

    def snapshot_dir(self, snapshot_id: str) -> Path:
        return self.mount / "snapshots" / snapshot_id


def _service(
    layout: Path | _Layout, **overrides: object
) -> tuple[DefaultSnapshotStoreService, _Layout]:
    """Build one snapshot store over real local substrates."""
    paths = layout if isinstance(layout, _Layout) else _Layout(layout)
    service = DefaultSnapshotStoreService(
        settings=SnapshotStoreSettings(**overrides),
        durable_store=LocalDurableStoreSubstrate(
            settings=DurableStoreSettings(mount_path=str(paths.mount), fsync_writes=False)
        ),
        workspace=LocalWorkspaceSubstrate(
            settings=WorkspaceSettings(
                config_dir=str(paths.config_dir), skills_dir=str(paths.skills_dir)
            )
        ),
        clock=lambda: datetime(2026, 1, 1, tzinfo=UTC),
    )
    return service, paths


@pytest.mark.asyncio
async def test_create_records_counts_sizes_and_score(tmp_path: Path) -> None:
    """Snapshots should capture group counts, byte sizes, and completeness."""
    service, layout = _service(tmp_path)
    config = json.dumps({"channels": {"telegram": {}}, "pad": ""})
    layout.write_config(config + " " * (512 - len(config)))
    for name in ("a.md", "b.md", "c.md"):
        layout.write_skill(name)

    result = await service.create(meta=_meta())

    assert result.ok
    snapshot = result.value
    assert snapshot is not None
    assert snapshot.id.startswith("snap-")
    assert snapshot.version == 1
    assert snapshot.trigger is SnapshotTrigger.MANUAL
    assert snapshot.description == "manual snapshot"
    assert snapshot.files.has_config is True
    assert snapshot.files.skills_count == 3
    assert snapshot.metadata.config_size == 512
    assert snapshot.completeness_score is not None
    assert snapshot.completeness_score.score == 40

    stored = json.loads(
        (layout.snapshot_dir(snapshot.id) / "metadata.json").read_text(encoding="utf-8")
    )
    assert stored["files"]["skillsCount"] == 3
    assert stored["metadata"]["configSize"] == 512
    assert stored["timestamp"] == "2026-01-01T00:00:00Z"
    for group in ("config", "skills", "conversations", "devices", "data"):
        assert (layout.snapshot_dir(snapshot.id) / group).is_dir()


@pytest.mark.asyncio
async def test_create_evicts_oldest_beyond_retention(tmp_path: Path) -> None:
    """The index should never exceed max snapshots; evicted dirs are removed."""
    service, layout = _service(tmp_path, max_snapshots=2)
    layout.write_config("{}")

    created = []
    for _ in range(3):
        result = await service.create(meta=_meta(), trigger=SnapshotTrigger.AUTO)
        assert result.value is not None
        created.append(result.value)

    index = (await service.get_index(meta=_meta())).value
    assert index is not None
    assert [item.id for item in index.snapshots] == [created[2].id, created[1].id]
    assert index.current_version == 3
    assert index.max_snapshots == 2
    assert not layout.snapshot_dir(created[0].id).exists()


@pytest.mark.asyncio
async def test_restore_replaces_live_state_and_compares_clean(tmp_path: Path) -> None:
    """Restore should fully replace live groups and take a pre-restore backup."""
    service, layout = _service(tmp_path)
    layout.write_config('{"channels": {"telegram": {}}}')
    layout.write_skill("keep.md")
    snapshot = (await service.create(meta=_meta())).value
    assert snapshot is not None

    layout.write_config("{}")
    layout.write_skill("extra.md")
    restored = await service.restore(meta=_meta(), snapshot_id=snapshot.id)

    assert restored.ok
    assert restored.value is not None
    assert layout.config_file.read_text(encoding="utf-8") == (
        '{"channels": {"telegram": {}}}'
    )
    assert sorted(item.name for item in layout.skills_dir.iterdir()) == ["keep.md"]

    backup_id = restored.value.pre_restore_snapshot_id
    assert backup_id is not None
    content = (await service.get_snapshot(meta=_meta(), snapshot_id=backup_id)).value
    assert content is not None
    assert content.metadata.trigger is SnapshotTrigger.PRE_RESTORE
    assert content.metadata.description == (
        f"Pre-restore backup (before restoring {snapshot.id})"
    )
    assert content.config_text == "{}"
    assert content.skills == ("extra.md", "keep.md")

    comparison = (await service.compare(meta=_meta(), snapshot_id=snapshot.id)).value
    assert comparison is not None
    assert comparison.config_changed is False
    assert comparison.skills_added == ()
    assert comparison.skills_removed == ()


@pytest.mark.asyncio
async def test_restore_removes_config_absent_from_snapshot(tmp_path: Path) -> None:
    """A group missing from the snapshot should be removed from the live state."""
    service, layout = _service(tmp_path, pre_restore_snapshot=False)
    snapshot = (await service.create(meta=_meta())).value
    assert snapshot is not None
    assert snapshot.files.has_config is False

    layout.write_config('{"a": 1}')
    result = await service.restore(meta=_meta(), snapshot_id=snapshot.id)

    assert result.ok
    assert result.value is not None
    assert result.value.pre_restore_snapshot_id is None
    assert not layout.config_file.exists()


@pytest.mark.asyncio
async def test_restore_of_oldest_snapshot_at_capacity(tmp_path: Path) -> None:
    """The pre-restore backup must not evict the snapshot being restored."""
    service, layout = _service(tmp_path, max_snapshots=1)
    layout.write_config('{"v": 1}')
    original = (await service.create(meta=_meta())).value
    assert original is not None

    layout.write_config('{"v": 2}')
    result = await service.restore(meta=_meta(), snapshot_id=original.id)

    assert result.ok
    assert layout.config_file.read_text(encoding="utf-8") == '{"v": 1}'
    listed = (await service.list_snapshots(meta=_meta())).value
    assert listed is not None
    assert len(listed) == 1
    assert listed[0].trigger is SnapshotTrigger.PRE_RESTORE


@pytest.mark.asyncio
async def test_failed_restore_still_enforces_retention(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A failed copy-out should trim to capacity while keeping the restore target."""
    service, layout = _service(tmp_path, max_snapshots=2)
    layout.write_config('{"v": 1}')
    oldest = (await service.create(meta=_meta())).value
    layout.write_config('{"v": 2}')
    target = (await service.create(meta=_meta())).value
    assert oldest is not None and target is not None

    async def _failing_copy_out(destination: Path, *parts: str, **kwargs: object):
        raise OSError("read-only file system")

    durable = service._durable  # noqa: SLF001
    monkeypatch.setattr(durable, "copy_out", _failing_copy_out)

    result = await service.restore(meta=_meta(), snapshot_id=target.id)

    assert result.ok is False
    assert result.errors[0].code == codes.OPERATION_FAILED
    index = (await service.get_index(meta=_meta())).value
    assert index is not None
    assert len(index.snapshots) == 2
    assert index.snapshots[0].trigger is SnapshotTrigger.PRE_RESTORE
    assert index.snapshots[1].id == target.id
    assert not layout.snapshot_dir(oldest.id).exists()
    on_disk = {
        item.name
        for item in (layout.mount / "snapshots").iterdir()
        if item.is_dir()
    }
    assert on_disk == {item.id for item in index.snapshots}


@pytest.mark.asyncio
async def test_compare_two_snapshots_reports_config_and_skill_changes(
    tmp_path: Path,
) -> None:
    """Comparisons should diff config text and skill file names."""
    service, layout = _service(tmp_path)
    layout.write_config('{"a": 1}\n')
    layout.write_skill("old.md")
    first = (await service.create(meta=_meta())).value
    layout.write_config('{"a": 2}\n')
    (layout.skills_dir / "old.md").unlink()
    layout.write_skill("new.md")
    second = (await service.create(meta=_meta())).value
    assert first is not None and second is not None

    result = await service.compare(
        meta=_meta(), snapshot_id=first.id, compare_to=second.id
    )

    comparison = result.value
    assert comparison is not None
    assert comparison.config_changed is True
    assert comparison.config_diff is not None
    assert '-{"a": 1}' in comparison.config_diff
    assert '+{"a": 2}' in comparison.config_diff
    assert comparison.skills_added == ("new.md",)
    assert comparison.skills_removed == ("old.md",)


@pytest.mark.asyncio
async def test_delete_removes_index_entry_and_directory(tmp_path: Path) -> None:
    """Delete should drop the snapshot everywhere and report unknown ids."""
    service, layout = _service(tmp_path)
    snapshot = (await service.create(meta=_meta())).value
    assert snapshot is not None

    deleted = await service.delete(meta=_meta(), snapshot_id=snapshot.id)
    assert deleted.ok
    assert not layout.snapshot_dir(snapshot.id).exists()
    assert (await service.list_snapshots(meta=_meta())).value == []

    missing = await service.delete(meta=_meta(), snapshot_id=snapshot.id)
    assert missing.errors[0].code == SNAPSHOT_NOT_FOUND
    assert missing.errors[0].category == ErrorCategory.NOT_FOUND


@pytest.mark.asyncio
async def test_unknown_snapshot_reads_are_not_found(tmp_path: Path) -> None:
    """Reads and restores of unknown ids should map to not-found errors."""
    service, _ = _service(tmp_path)

    for result in (
        await service.get_snapshot(meta=_meta(), snapshot_id="snap-missing"),
        await service.restore(meta=_meta(), snapshot_id="snap-missing"),
        await service.compare(meta=_meta(), snapshot_id="snap-missing"),
    ):
        assert result.ok is False
        assert result.errors[0].code == SNAPSHOT_NOT_FOUND


@pytest.mark.asyncio
async def test_invalid_snapshot_id_is_rejected(tmp_path: Path) -> None:
    """Ids with path separators should be rejected before touching storage."""
    service, _ = _service(tmp_path)

    result = await service.get_snapshot(meta=_meta(), snapshot_id="../clawdbot")

    assert result.errors[0].category == ErrorCategory.VALIDATION
    assert result.errors[0].code == codes.INVALID_ARGUMENT


@pytest.mark.asyncio
async def test_unmounted_store_is_dependency_unavailable(tmp_path: Path) -> None:
    """Operations should fail with a dependency error when the store is absent."""
    layout = _Layout(tmp_path)
    layout.mount.rmdir()
    service, _ = _service(layout)

    result = await service.create(meta=_meta())

    assert result.ok is False
    assert result.errors[0].category == ErrorCategory.DEPENDENCY
    assert result.errors[0].code == codes.DEPENDENCY_UNAVAILABLE


@pytest.mark.asyncio
async def test_failed_copy_discards_partial_snapshot(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A mid-copy failure should remove the partial directory and keep the index."""
    service, layout = _service(tmp_path)
    layout.write_config("{}")
    first = (await service.create(meta=_meta())).value
    assert first is not None

    durable = service._durable  # noqa: SLF001
    original_copy_in = durable.copy_in

    async def _failing_copy_in(source: Path, *parts: str, **kwargs: object):
        if parts[-1] == TrackedGroup.DEVICES.value:
            raise OSError("disk full")
        return await original_copy_in(source, *parts, **kwargs)

    monkeypatch.setattr(durable, "copy_in", _failing_copy_in)

    result = await service.create(meta=_meta())

    assert result.ok is False
    assert result.errors[0].code == codes.OPERATION_FAILED
    assert sorted(item.name for item in (layout.mount / "snapshots").iterdir()) == (
        sorted([first.id, "index.json"])
    )
    index = (await service.get_index(meta=_meta())).value
    assert index is not None
    assert [item.id for item in index.snapshots] == [first.id]


@pytest.mark.asyncio
async def test_malformed_index_fails_without_overwriting(tmp_path: Path) -> None:
    """A corrupt index should surface an error and stay on disk untouched."""
    service, layout = _service(tmp_path)
    index_path = layout.mount / "snapshots" / "index.json"
    index_path.parent.mkdir(parents=True)
    index_path.write_text('{"snapshots": "nope"}', encoding="utf-8")

    result = await service.create(meta=_meta())

    assert result.ok is False
    assert result.errors[0].code == "SNAPSHOT_INDEX_CORRUPT"
    assert index_path.read_text(encoding="utf-8") == '{"snapshots": "nope"}'


@pytest.mark.asyncio
async def test_health_reports_substrate_readiness(tmp_path: Path) -> None:
    """Health should reflect both substrates."""
    service, _ = _service(tmp_path)

    health = (await service.health(meta=_meta())).value

    assert health is not None
    assert health.durable_store_ready is True
    assert health.workspace_ready is True
    assert health.detail == "ok"
