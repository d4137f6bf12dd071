"""Pydantic settings for Notification Hub Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.guard_shared.config import GuardSettings, resolve_component_settings
from services.action.notification_hub.component import SERVICE_COMPONENT_ID


class NotificationHubSettings(BaseModel):
    """Retention and delivery settings for the in-memory hub."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_notifications: int = Field(default=100, gt=0)
    send_timeout_seconds: float = Field(default=5.0, gt=0)
    approval_endpoint_prefix: str = "/api/admin/evolution"

    @field_validator("approval_endpoint_prefix")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        """Normalize the endpoint prefix used in approval actions."""
        return value.rstrip("/")


def resolve_notification_hub_settings(settings: GuardSettings) -> NotificationHubSettings:
    """Resolve hub settings from ``service.notification_hub``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=NotificationHubSettings,
    )
