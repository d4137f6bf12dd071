"""Validation helpers for envelope metadata."""

from __future__ import annotations

from dataclasses import asdict
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .meta import EnvelopeKind, EnvelopeMeta


class _ValidatedEnvelopeMeta(BaseModel):
    """Validation-only envelope metadata model used by ``validate_meta``."""

    model_config = ConfigDict(extra="forbid")

    envelope_id: str = Field(min_length=1)
    trace_id: str = Field(min_length=1)
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str = Field(min_length=1)
    principal: str = Field(min_length=1)

    @model_validator(mode="after")
    def _enforce_kind(self) -> "_ValidatedEnvelopeMeta":
        """Reject unspecified envelope kinds."""
        if self.kind == EnvelopeKind.UNSPECIFIED:
            raise ValueError("metadata.kind must be specified")
        return self


def validate_meta(meta: EnvelopeMeta) -> None:
    """Validate required envelope metadata fields.

    Raises ``ValueError`` with a stable message naming the offending field.
    """
    try:
        _ValidatedEnvelopeMeta.model_validate(asdict(meta))
    except ValidationError as exc:
        first_error = exc.errors()[0]
        location = first_error.get("loc", ())
        if location and str(location[0]) != "kind":
            raise ValueError(f"metadata.{location[0]} is required") from None
        raise ValueError("metadata.kind must be specified") from None


def utc_now() -> datetime:
    """Return current UTC timestamp."""
    return datetime.now(UTC)
