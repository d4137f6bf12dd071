"""Workspace substrate resource exports."""

from resources.substrates.workspace.component import MANIFEST, RESOURCE_COMPONENT_ID
from resources.substrates.workspace.config import (
    WorkspaceSettings,
    resolve_workspace_settings,
)
from resources.substrates.workspace.substrate import (
    TrackedGroup,
    WorkspaceHealthStatus,
    WorkspaceSubstrate,
)
from resources.substrates.workspace.workspace_substrate import LocalWorkspaceSubstrate

__all__ = [
    "MANIFEST",
    "RESOURCE_COMPONENT_ID",
    "LocalWorkspaceSubstrate",
    "TrackedGroup",
    "WorkspaceHealthStatus",
    "WorkspaceSettings",
    "WorkspaceSubstrate",
    "resolve_workspace_settings",
]
