"""Evolution Workflow Service native package exports."""

from services.action.evolution_workflow.component import (
    MANIFEST,
    SERVICE_COMPONENT_ID,
)
from services.action.evolution_workflow.config import (
    EvolutionMode,
    EvolutionWorkflowSettings,
)
from services.action.evolution_workflow.domain import (
    EVOLUTION_NOT_FOUND,
    ApplyResult,
    EvolutionPreview,
    EvolutionRequest,
    EvolutionStatus,
    HealthStatus,
)
from services.action.evolution_workflow.implementation import (
    DefaultEvolutionWorkflowService,
)
from services.action.evolution_workflow.risk import (
    ChangeType,
    ConfigChange,
    RiskAnalysis,
    RiskAssessment,
    RiskTier,
    analyze_risk,
    classify,
    describe_change,
    detect_changes,
    render_diff,
)
from services.action.evolution_workflow.service import (
    EvolutionWorkflowService,
    build_evolution_workflow_service,
)

__all__ = [
    "EVOLUTION_NOT_FOUND",
    "MANIFEST",
    "SERVICE_COMPONENT_ID",
    "ApplyResult",
    "ChangeType",
    "ConfigChange",
    "DefaultEvolutionWorkflowService",
    "EvolutionMode",
    "EvolutionPreview",
    "EvolutionRequest",
    "EvolutionStatus",
    "EvolutionWorkflowService",
    "EvolutionWorkflowSettings",
    "HealthStatus",
    "RiskAnalysis",
    "RiskAssessment",
    "RiskTier",
    "analyze_risk",
    "build_evolution_workflow_service",
    "classify",
    "describe_change",
    "detect_changes",
    "render_diff",
]
