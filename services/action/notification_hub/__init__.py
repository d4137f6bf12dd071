"""Notification Hub Service native package exports."""

from services.action.notification_hub.component import (
    MANIFEST,
    SERVICE_COMPONENT_ID,
)
from services.action.notification_hub.config import NotificationHubSettings
from services.action.notification_hub.domain import (
    NOTIFICATION_ID_PREFIX,
    PENDING_EVOLUTION_NOT_FOUND,
    ActionType,
    ChangeSummary,
    EvolutionDetails,
    FrameType,
    HealthStatus,
    HubStatus,
    Notification,
    NotificationAction,
    NotificationSource,
    NotificationType,
    PendingEvolution,
    PendingStatus,
    Severity,
    Subscriber,
    frame,
    severity_for_risk,
)
from services.action.notification_hub.implementation import (
    DefaultNotificationHubService,
)
from services.action.notification_hub.service import (
    NotificationHubService,
    build_notification_hub_service,
)

__all__ = [
    "MANIFEST",
    "NOTIFICATION_ID_PREFIX",
    "PENDING_EVOLUTION_NOT_FOUND",
    "SERVICE_COMPONENT_ID",
    "ActionType",
    "ChangeSummary",
    "DefaultNotificationHubService",
    "EvolutionDetails",
    "FrameType",
    "HealthStatus",
    "HubStatus",
    "Notification",
    "NotificationAction",
    "NotificationHubService",
    "NotificationHubSettings",
    "NotificationSource",
    "NotificationType",
    "PendingEvolution",
    "PendingStatus",
    "Severity",
    "Subscriber",
    "build_notification_hub_service",
    "frame",
    "severity_for_risk",
]
