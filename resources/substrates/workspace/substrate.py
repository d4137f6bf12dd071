"""Protocol and group vocabulary for the live assistant workspace."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Protocol

from pydantic import BaseModel, ConfigDict

from packages.guard_shared.tree_ops import TreeStats


class TrackedGroup(str, Enum):
    """Groups of live state captured by snapshots and backups."""

    CONFIG = "config"
    SKILLS = "skills"
    CONVERSATIONS = "conversations"
    DEVICES = "devices"
    DATA = "data"

    @property
    def is_directory(self) -> bool:
        """Return whether this group is a directory rather than one file."""
        return self is not TrackedGroup.CONFIG


class WorkspaceHealthStatus(BaseModel):
    """Workspace readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ready: bool
    detail: str


class WorkspaceSubstrate(Protocol):
    """Protocol for reading and replacing the live assistant state."""

    @property
    def config_filename(self) -> str:
        """Return the live configuration file name."""

    @property
    def config_dir(self) -> Path:
        """Return the directory holding the configuration file."""

    def health(self) -> WorkspaceHealthStatus:
        """Report whether the workspace directories are reachable."""

    def group_path(self, group: TrackedGroup) -> Path:
        """Return the live path of one tracked group."""

    async def read_config_text(self) -> str | None:
        """Return raw configuration text; ``None`` when the file is absent."""

    async def write_config(self, config: Mapping[str, Any]) -> None:
        """Atomically replace the live configuration file."""

    async def measure(self, group: TrackedGroup) -> TreeStats:
        """Return entry count and byte size of one tracked group."""

    async def list_names(self, group: TrackedGroup) -> list[str]:
        """List entry names of one directory group."""

    async def group_exists(self, group: TrackedGroup) -> bool:
        """Return whether one tracked group is present on disk."""

    async def ensure_directory(self, group: TrackedGroup) -> None:
        """Create one directory group, including parents, when absent."""
