"""Tests for shared filesystem tree helpers and persisted JSON models."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from packages.guard_shared.json_models import PersistedModel
from packages.guard_shared.tree_ops import (
    EMPTY_STATS,
    copy_entry,
    list_names,
    measure,
    read_text_or_none,
    remove_entry,
    replace_entry,
    write_text_atomic,
)


def _tree(root: Path) -> Path:
    (root / "nested").mkdir(parents=True)
    (root / "a.json").write_text("{}", encoding="utf-8")
    (root / "debug.log").write_text("noise", encoding="utf-8")
    (root / "nested" / "b.txt").write_text("hello", encoding="utf-8")
    return root


def test_measure_counts_top_level_entries_and_recursive_bytes(tmp_path: Path) -> None:
    root = _tree(tmp_path / "src")

    stats = measure(root)

    assert stats.count == 3
    assert stats.size == 2 + 5 + 5
    assert measure(tmp_path / "missing") == EMPTY_STATS
    assert measure(root / "a.json").count == 1


def test_copy_entry_applies_exclusions(tmp_path: Path) -> None:
    root = _tree(tmp_path / "src")

    stats = copy_entry(root, tmp_path / "dst", directory=True, exclude=("*.log",))

    assert list_names(tmp_path / "dst") == ["a.json", "nested"]
    assert stats.count == 2


def test_copy_entry_creates_empty_directory_for_missing_source(tmp_path: Path) -> None:
    stats = copy_entry(tmp_path / "absent", tmp_path / "dst", directory=True)

    assert (tmp_path / "dst").is_dir()
    assert stats == EMPTY_STATS


def test_replace_entry_never_merges(tmp_path: Path) -> None:
    root = _tree(tmp_path / "src")
    destination = tmp_path / "dst"
    destination.mkdir()
    (destination / "stale.json").write_text("{}", encoding="utf-8")

    replace_entry(root, destination, directory=True)

    assert "stale.json" not in list_names(destination)
    assert list_names(destination) == ["a.json", "debug.log", "nested"]


def test_replace_entry_removes_file_when_source_is_absent(tmp_path: Path) -> None:
    target = tmp_path / "config.json"
    target.write_text("{}", encoding="utf-8")

    stats = replace_entry(tmp_path / "absent.json", target, directory=False)

    assert stats == EMPTY_STATS
    assert not target.exists()
    assert remove_entry(target) is False


def test_write_text_atomic_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "deep" / "index.json"

    write_text_atomic(target, '{"v": 1}', fsync=False)
    write_text_atomic(target, '{"v": 2}', fsync=False)

    assert read_text_or_none(target) == '{"v": 2}'
    assert list_names(target.parent) == ["index.json"]
    assert read_text_or_none(tmp_path / "nope.json") is None


class _Record(PersistedModel):
    snapshot_id: str
    created_at: datetime
    description: str | None = None


def test_persisted_model_uses_camel_case_and_ignores_unknown_keys() -> None:
    record = _Record.model_validate(
        {
            "snapshotId": "snap-01ABC",
            "createdAt": "2026-05-02T09:30:00Z",
            "futureField": True,
        }
    )

    assert record.snapshot_id == "snap-01ABC"
    assert record.created_at == datetime(2026, 5, 2, 9, 30, tzinfo=UTC)
    assert record.to_json() == {
        "snapshotId": "snap-01ABC",
        "createdAt": "2026-05-02T09:30:00Z",
    }
