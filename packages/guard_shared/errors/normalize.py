"""Exception normalization into shared ``ErrorDetail`` values."""

from __future__ import annotations

from . import codes
from .factories import dependency_error, internal_error, not_found_error, policy_error
from .types import ErrorDetail


def exception_to_error(exc: Exception, *, operation: str | None = None) -> ErrorDetail:
    """Normalize a Python exception into a shared ``ErrorDetail``.

    Filesystem errors are treated as operation failures of the durable store or
    live workspace rather than caller mistakes.
    """
    metadata: dict[str, object] = {"exception_type": type(exc).__name__}
    if operation is not None:
        metadata["operation"] = operation
    detail = str(exc) or type(exc).__name__

    if isinstance(exc, FileNotFoundError):
        return not_found_error(detail, code=codes.RESOURCE_NOT_FOUND, metadata=metadata)
    if isinstance(exc, PermissionError):
        return policy_error(detail, code=codes.PERMISSION_DENIED, metadata=metadata)
    if isinstance(exc, TimeoutError):
        return dependency_error(detail, code=codes.DEPENDENCY_TIMEOUT, metadata=metadata)
    if isinstance(exc, ConnectionError):
        return dependency_error(detail, code=codes.DEPENDENCY_UNAVAILABLE, metadata=metadata)
    if isinstance(exc, OSError):
        return internal_error(detail, code=codes.OPERATION_FAILED, metadata=metadata)
    return internal_error(detail, code=codes.UNEXPECTED_EXCEPTION, metadata=metadata)
