"""Local-disk workspace substrate for the live assistant state."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Mapping

from packages.guard_shared import tree_ops
from packages.guard_shared.tree_ops import TreeStats
from resources.substrates.workspace.config import WorkspaceSettings
from resources.substrates.workspace.substrate import (
    TrackedGroup,
    WorkspaceHealthStatus,
    WorkspaceSubstrate,
)


class LocalWorkspaceSubstrate(WorkspaceSubstrate):
    """Read and replace live assistant state under configured directories."""

    def __init__(self, *, settings: WorkspaceSettings) -> None:
        self._settings = settings
        self._config_dir = settings.config_dir_path()
        self._paths = {
            TrackedGroup.CONFIG: self._config_dir / settings.config_filename,
            TrackedGroup.SKILLS: settings.skills_dir_path(),
            TrackedGroup.CONVERSATIONS: self._config_dir / settings.conversations_dirname,
            TrackedGroup.DEVICES: self._config_dir / settings.devices_dirname,
            TrackedGroup.DATA: self._config_dir / settings.data_dirname,
        }

    @property
    def config_filename(self) -> str:
        """Return the live configuration file name."""
        return self._settings.config_filename

    @property
    def config_dir(self) -> Path:
        """Return the directory holding the configuration file."""
        return self._config_dir

    def health(self) -> WorkspaceHealthStatus:
        """Report whether the configuration directory is reachable."""
        if not self._config_dir.is_dir():
            return WorkspaceHealthStatus(
                ready=False, detail=f"config dir missing: {self._config_dir}"
            )
        return WorkspaceHealthStatus(ready=True, detail="ok")

    def group_path(self, group: TrackedGroup) -> Path:
        """Return the live path of one tracked group."""
        return self._paths[group]

    async def read_config_text(self) -> str | None:
        """Return raw configuration text; ``None`` when the file is absent."""
        return await asyncio.to_thread(
            tree_ops.read_text_or_none, self._paths[TrackedGroup.CONFIG]
        )

    async def write_config(self, config: Mapping[str, Any]) -> None:
        """Atomically replace the live configuration file."""
        await asyncio.to_thread(
            tree_ops.write_text_atomic,
            self._paths[TrackedGroup.CONFIG],
            json.dumps(config, indent=2),
            temp_prefix=self._settings.temp_prefix,
        )

    async def measure(self, group: TrackedGroup) -> TreeStats:
        """Return entry count and byte size of one tracked group."""
        return await asyncio.to_thread(tree_ops.measure, self._paths[group])

    async def list_names(self, group: TrackedGroup) -> list[str]:
        """List entry names of one directory group."""
        return await asyncio.to_thread(tree_ops.list_names, self._paths[group])

    async def group_exists(self, group: TrackedGroup) -> bool:
        """Return whether one tracked group is present on disk."""
        path = self._paths[group]
        check = path.is_dir if group.is_directory else path.is_file
        return await asyncio.to_thread(check)

    async def ensure_directory(self, group: TrackedGroup) -> None:
        """Create one directory group, including parents, when absent."""
        if not group.is_directory:
            raise ValueError(f"{group.value} is not a directory group")
        await asyncio.to_thread(self._paths[group].mkdir, parents=True, exist_ok=True)
