"""Public shared envelope API for Evolution Guard components."""

from .builders import failure, success
from .envelope import Envelope
from .meta import EnvelopeKind, EnvelopeMeta, child_meta, new_meta
from .payload import Payload
from .validate import utc_now, validate_meta

__all__ = [
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "Payload",
    "child_meta",
    "failure",
    "new_meta",
    "success",
    "utc_now",
    "validate_meta",
]
