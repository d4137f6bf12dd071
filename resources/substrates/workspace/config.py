"""Pydantic settings locating the live assistant state on disk."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from packages.guard_shared.config import GuardSettings, resolve_component_settings
from resources.substrates.workspace.component import RESOURCE_COMPONENT_ID


class WorkspaceSettings(BaseModel):
    """Paths of the live configuration file and tracked directories."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    config_dir: str = "/root/.clawdbot"
    config_filename: str = "clawdbot.json"
    skills_dir: str = "/root/clawd/skills"
    conversations_dirname: str = "conversations"
    devices_dirname: str = "devices"
    data_dirname: str = "data"
    temp_prefix: str = "guardtmp"

    @field_validator(
        "config_dir",
        "config_filename",
        "skills_dir",
        "conversations_dirname",
        "devices_dirname",
        "data_dirname",
    )
    @classmethod
    def _require_text(cls, value: str) -> str:
        """Require non-empty path components."""
        normalized = value.strip()
        if normalized == "":
            raise ValueError("workspace paths must be non-empty")
        return normalized

    def config_dir_path(self) -> Path:
        """Return the expanded live configuration directory."""
        return Path(self.config_dir).expanduser()

    def skills_dir_path(self) -> Path:
        """Return the expanded live skills directory."""
        return Path(self.skills_dir).expanduser()


def resolve_workspace_settings(settings: GuardSettings) -> WorkspaceSettings:
    """Resolve workspace settings from ``substrate.workspace``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(RESOURCE_COMPONENT_ID),
        model=WorkspaceSettings,
    )
