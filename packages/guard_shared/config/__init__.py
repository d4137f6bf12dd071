"""Public API for shared Evolution Guard configuration utilities."""

from .loader import load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    ENV_PREFIX,
    ComponentsSettings,
    GuardSettings,
    HttpSettings,
    LoggingSettings,
    ObservabilitySettings,
    resolve_component_settings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "ComponentsSettings",
    "GuardSettings",
    "HttpSettings",
    "LoggingSettings",
    "ObservabilitySettings",
    "load_settings",
    "resolve_component_settings",
]
