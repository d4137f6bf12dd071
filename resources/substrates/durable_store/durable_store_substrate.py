"""Mounted-bucket durable store with atomic writes and retrying mounts."""

from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Iterable

from packages.guard_shared import tree_ops
from packages.guard_shared.logging import get_logger
from packages.guard_shared.tree_ops import TreeStats
from resources.substrates.durable_store.config import DurableStoreSettings
from resources.substrates.durable_store.substrate import (
    DurableStoreHealthStatus,
    DurableStoreSubstrate,
)

_LOGGER = get_logger(__name__)


class LocalDurableStoreSubstrate(DurableStoreSubstrate):
    """Durable store accessed purely as a mounted local filesystem path."""

    def __init__(
        self,
        *,
        settings: DurableStoreSettings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._root = settings.root_path()
        self._sleep = sleep

    @property
    def root(self) -> Path:
        """Return the mount root path."""
        return self._root

    def health(self) -> DurableStoreHealthStatus:
        """Report whether the store is mounted and usable."""
        if self.is_mounted():
            return DurableStoreHealthStatus(ready=True, detail="ok")
        if not self._settings.has_credentials():
            return DurableStoreHealthStatus(
                ready=False, detail="durable store is not configured"
            )
        return DurableStoreHealthStatus(
            ready=False, detail=f"durable store not mounted at {self._root}"
        )

    def is_mounted(self) -> bool:
        """Return whether the mount root is currently available."""
        if self._settings.require_mount_point:
            return os.path.ismount(self._root)
        return self._root.is_dir()

    async def ensure_mounted(self) -> bool:
        """Mount the store with exponential-backoff retries when needed.

        The mount check runs again after each failed attempt because a mount
        command can report failure while the mount actually took effect.
        """
        if self.is_mounted():
            return True
        if not self._settings.has_credentials():
            _LOGGER.warning(
                "durable store not configured; skipping mount",
                extra={"mount_path": str(self._root)},
            )
            return False

        attempts = self._settings.mount_max_retries
        for attempt in range(1, attempts + 1):
            try:
                await self._run_mount_command()
                if self.is_mounted():
                    _LOGGER.info("durable store mounted at %s", self._root)
                    return True
                raise OSError("mount command completed but mount path is unavailable")
            except (OSError, TimeoutError) as exc:
                if self.is_mounted():
                    _LOGGER.info("durable store mounted despite error at %s", self._root)
                    return True
                _LOGGER.warning(
                    "durable store mount attempt %d/%d failed: %s",
                    attempt,
                    attempts,
                    exc,
                )
                if attempt < attempts:
                    await self._sleep(
                        self._settings.mount_base_delay_seconds * (2 ** (attempt - 1))
                    )

        _LOGGER.error(
            "durable store mount failed after %d attempts", attempts
        )
        return False

    def resolve(self, *parts: str) -> Path:
        """Resolve one relative path, rejecting escapes from the mount root."""
        path = self._root.joinpath(*parts).resolve()
        if path != self._root and self._root not in path.parents:
            raise ValueError(f"path escapes durable store root: {'/'.join(parts)}")
        return path

    async def exists(self, *parts: str) -> bool:
        """Return whether one relative path exists."""
        return await asyncio.to_thread(self.resolve(*parts).exists)

    async def read_json(self, *parts: str) -> Any | None:
        """Read and decode one JSON file; ``None`` when absent."""
        text = await self.read_text(*parts)
        if text is None:
            return None
        return json.loads(text)

    async def write_json(self, *parts: str, value: Any) -> None:
        """Atomically write one pretty-printed JSON document."""
        await self.write_text(*parts, text=json.dumps(value, indent=2, default=str))

    async def read_text(self, *parts: str) -> str | None:
        """Read one UTF-8 text file; ``None`` when absent."""
        return await asyncio.to_thread(tree_ops.read_text_or_none, self.resolve(*parts))

    async def write_text(self, *parts: str, text: str) -> None:
        """Atomically write one UTF-8 text file."""
        await asyncio.to_thread(
            tree_ops.write_text_atomic,
            self.resolve(*parts),
            text,
            temp_prefix=self._settings.temp_prefix,
            fsync=self._settings.fsync_writes,
        )

    async def remove(self, *parts: str) -> bool:
        """Remove one file or tree; return whether anything existed."""
        return await asyncio.to_thread(tree_ops.remove_entry, self.resolve(*parts))

    async def list_names(self, *parts: str) -> list[str]:
        """List entry names of one directory."""
        return await asyncio.to_thread(tree_ops.list_names, self.resolve(*parts))

    async def measure(self, *parts: str) -> TreeStats:
        """Return entry count and byte size of one path."""
        return await asyncio.to_thread(tree_ops.measure, self.resolve(*parts))

    async def copy_in(
        self,
        source: Path,
        *parts: str,
        directory: bool,
        replace: bool = False,
        exclude: Iterable[str] = (),
    ) -> TreeStats:
        """Copy one live file or tree into the store."""
        operation = tree_ops.replace_entry if replace else tree_ops.copy_entry
        return await asyncio.to_thread(
            operation,
            source,
            self.resolve(*parts),
            directory=directory,
            exclude=tuple(exclude),
        )

    async def copy_out(
        self,
        destination: Path,
        *parts: str,
        directory: bool,
    ) -> TreeStats:
        """Fully replace one live file or tree with the stored copy."""
        return await asyncio.to_thread(
            tree_ops.replace_entry,
            self.resolve(*parts),
            destination,
            directory=directory,
        )

    async def _run_mount_command(self) -> None:
        """Run the configured mount command once, raising on failure."""
        settings = self._settings
        argv = [
            part.format(
                bucket=settings.bucket_name,
                mount_path=str(self._root),
                endpoint=settings.endpoint,
            )
            for part in settings.mount_command
        ]
        if settings.require_mount_point:
            await asyncio.to_thread(self._root.mkdir, parents=True, exist_ok=True)
        env = {
            **os.environ,
            "AWSACCESSKEYID": settings.access_key_id,
            "AWSSECRETACCESSKEY": settings.secret_access_key.get_secret_value(),
        }
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=settings.mount_timeout_seconds
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise TimeoutError(
                f"mount command timed out after {settings.mount_timeout_seconds}s"
            ) from None
        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise OSError(f"mount command exited {process.returncode}: {detail}")
