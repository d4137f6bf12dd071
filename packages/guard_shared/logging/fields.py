"""Canonical logging field names shared by every component.

Centralizing names keeps log aggregation queries stable across services.
"""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

# Envelope/correlation fields.
TRACE_ID = "trace_id"
ENVELOPE_ID = "envelope_id"
SOURCE = "source"
PRINCIPAL = "principal"

# Public API invocation fields.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT = "public_api_instrumentation_failure"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"
OUTCOME = "outcome"
ERROR_CATEGORY = "error_category"
STAGE = "stage"
CONCERN = "concern"

# Domain correlation fields.
SNAPSHOT_ID = "snapshot_id"
REQUEST_ID = "request_id"
ALERT_ID = "alert_id"
NOTIFICATION_ID = "notification_id"
TRIGGER = "trigger"
RISK = "risk"
SYNC_ACTION = "sync_action"
LOCAL_SCORE = "local_score"
REMOTE_SCORE = "remote_score"
CONSECUTIVE_FAILURES = "consecutive_failures"
PATHS = "paths"

# Common service-level fields.
SERVICE = "service"
ENVIRONMENT = "environment"
