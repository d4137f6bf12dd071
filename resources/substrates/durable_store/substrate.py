"""Transport-agnostic protocol for the mounted durable backing store."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Protocol

from pydantic import BaseModel, ConfigDict

from packages.guard_shared.tree_ops import TreeStats


class DurableStoreHealthStatus(BaseModel):
    """Durable store readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str


class DurableStoreSubstrate(Protocol):
    """Protocol for file and tree operations beneath the store mount path.

    Every ``parts`` argument is a relative path under the mount root.
    """

    @property
    def root(self) -> Path:
        """Return the mount root path."""

    def health(self) -> DurableStoreHealthStatus:
        """Report whether the store is mounted and usable."""

    def is_mounted(self) -> bool:
        """Return whether the mount root is currently available."""

    async def ensure_mounted(self) -> bool:
        """Mount the store when needed; return whether it is available."""

    def resolve(self, *parts: str) -> Path:
        """Resolve one relative path beneath the mount root."""

    async def exists(self, *parts: str) -> bool:
        """Return whether one relative path exists."""

    async def read_json(self, *parts: str) -> Any | None:
        """Read and decode one JSON file; ``None`` when absent."""

    async def write_json(self, *parts: str, value: Any) -> None:
        """Atomically write one JSON document."""

    async def read_text(self, *parts: str) -> str | None:
        """Read one UTF-8 text file; ``None`` when absent."""

    async def write_text(self, *parts: str, text: str) -> None:
        """Atomically write one UTF-8 text file."""

    async def remove(self, *parts: str) -> bool:
        """Remove one file or tree; return whether anything existed."""

    async def list_names(self, *parts: str) -> list[str]:
        """List entry names of one directory."""

    async def measure(self, *parts: str) -> TreeStats:
        """Return entry count and byte size of one path."""

    async def copy_in(
        self,
        source: Path,
        *parts: str,
        directory: bool,
        replace: bool = False,
        exclude: Iterable[str] = (),
    ) -> TreeStats:
        """Copy one live file or tree into the store."""

    async def copy_out(
        self,
        destination: Path,
        *parts: str,
        directory: bool,
    ) -> TreeStats:
        """Fully replace one live file or tree with the stored copy."""
