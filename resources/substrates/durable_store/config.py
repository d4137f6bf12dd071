"""Pydantic settings for the durable backing store substrate."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from packages.guard_shared.config import GuardSettings, resolve_component_settings
from resources.substrates.durable_store.component import RESOURCE_COMPONENT_ID

DEFAULT_MOUNT_COMMAND = (
    "s3fs",
    "{bucket}",
    "{mount_path}",
    "-o",
    "url={endpoint}",
    "-o",
    "use_path_request_style",
)


class DurableStoreSettings(BaseModel):
    """Mount location, bucket credentials, and retry policy for the store."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mount_path: str = "/data/guard"
    bucket_name: str = ""
    endpoint: str = ""
    access_key_id: str = ""
    secret_access_key: SecretStr = SecretStr("")
    mount_command: tuple[str, ...] = DEFAULT_MOUNT_COMMAND
    mount_max_retries: int = Field(default=3, gt=0)
    mount_base_delay_seconds: float = Field(default=1.0, ge=0)
    mount_timeout_seconds: float = Field(default=30.0, gt=0)
    require_mount_point: bool = False
    temp_prefix: str = "guardtmp"
    fsync_writes: bool = True

    @field_validator("mount_path")
    @classmethod
    def _validate_mount_path(cls, value: str) -> str:
        """Require a non-empty mount path."""
        normalized = value.strip()
        if normalized == "":
            raise ValueError("mount_path is required")
        return normalized

    def root_path(self) -> Path:
        """Return the expanded mount path."""
        return Path(self.mount_path).expanduser().resolve()

    def has_credentials(self) -> bool:
        """Return whether enough configuration exists to attempt a mount."""
        return bool(
            self.bucket_name
            and self.access_key_id
            and self.secret_access_key.get_secret_value()
            and self.mount_command
        )


def resolve_durable_store_settings(settings: GuardSettings) -> DurableStoreSettings:
    """Resolve durable store settings from ``substrate.durable_store``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(RESOURCE_COMPONENT_ID),
        model=DurableStoreSettings,
    )
