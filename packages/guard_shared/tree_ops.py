"""Structured filesystem helpers shared by the durable store and workspace.

All helpers are synchronous; substrates run them through ``asyncio.to_thread``
so callers can await them without blocking the event loop. Paths are always
``Path`` objects, never interpolated into shell commands.
"""

from __future__ import annotations

import fnmatch
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Iterable


@dataclass(frozen=True)
class TreeStats:
    """Item count and total byte size for one file or directory."""

    count: int
    size: int


EMPTY_STATS = TreeStats(count=0, size=0)


def measure(path: Path) -> TreeStats:
    """Return top-level entry count and recursive byte size of ``path``.

    A regular file counts as one item. A missing path measures as empty.
    """
    if path.is_file():
        return TreeStats(count=1, size=path.stat().st_size)
    if not path.is_dir():
        return EMPTY_STATS
    count = sum(1 for _ in path.iterdir())
    size = sum(item.stat().st_size for item in path.rglob("*") if item.is_file())
    return TreeStats(count=count, size=size)


def list_names(path: Path) -> list[str]:
    """Return sorted entry names under one directory; empty when absent."""
    if not path.is_dir():
        return []
    return sorted(item.name for item in path.iterdir())


def copy_entry(
    source: Path,
    destination: Path,
    *,
    directory: bool,
    exclude: Iterable[str] = (),
) -> TreeStats:
    """Copy one file or directory tree and return stats of the copy.

    A missing directory source still creates an empty ``destination`` so the
    copied layout always has one directory per tracked entry.
    """
    patterns = tuple(exclude)
    if directory:
        if source.is_dir():
            shutil.copytree(
                source,
                destination,
                dirs_exist_ok=True,
                ignore=shutil.ignore_patterns(*patterns) if patterns else None,
            )
        else:
            destination.mkdir(parents=True, exist_ok=True)
        return measure(destination)

    destination.parent.mkdir(parents=True, exist_ok=True)
    if not source.is_file() or _excluded(source.name, patterns):
        return EMPTY_STATS
    shutil.copy2(source, destination)
    return measure(destination)


def replace_entry(
    source: Path,
    destination: Path,
    *,
    directory: bool,
    exclude: Iterable[str] = (),
) -> TreeStats:
    """Fully replace ``destination`` with a copy of ``source`` (never a merge).

    When ``source`` is absent the destination is removed; directory entries are
    recreated empty.
    """
    remove_entry(destination)
    if not directory and not source.is_file():
        return EMPTY_STATS
    return copy_entry(source, destination, directory=directory, exclude=exclude)


def remove_entry(path: Path) -> bool:
    """Remove one file or directory tree; return whether anything existed."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        path.unlink()
        return True
    return False


def read_text_or_none(path: Path) -> str | None:
    """Read UTF-8 text, returning ``None`` when the file does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None


def write_text_atomic(
    path: Path,
    text: str,
    *,
    temp_prefix: str = "guardtmp",
    fsync: bool = True,
) -> None:
    """Write text through a sibling temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            prefix=f".{temp_prefix}-",
            suffix=".tmp",
            dir=path.parent,
            delete=False,
        ) as handle:
            tmp_path = Path(handle.name)
            handle.write(text)
            handle.flush()
            if fsync:
                os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def _excluded(name: str, patterns: tuple[str, ...]) -> bool:
    return any(fnmatch.fnmatch(name, pattern) for pattern in patterns)
