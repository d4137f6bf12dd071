"""Pydantic settings for Evolution Workflow Service behavior."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from packages.guard_shared.config import GuardSettings, resolve_component_settings
from services.action.evolution_workflow.component import SERVICE_COMPONENT_ID


class EvolutionMode(str, Enum):
    """How proposed changes reach the live configuration."""

    CONFIRM = "confirm"
    AUTO = "auto"


class EvolutionWorkflowSettings(BaseModel):
    """Approval mode, expiry, and protective snapshot settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: EvolutionMode = EvolutionMode.CONFIRM
    approval_ttl_seconds: int = Field(default=300, gt=0)
    snapshot_before_approval: bool = True


def resolve_evolution_workflow_settings(
    settings: GuardSettings,
) -> EvolutionWorkflowSettings:
    """Resolve workflow settings from ``service.evolution_workflow``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=EvolutionWorkflowSettings,
    )
