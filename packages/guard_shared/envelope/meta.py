"""Envelope metadata primitives shared across components."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from packages.guard_shared.ids import generate_ulid_str


class EnvelopeKind(str, Enum):
    """Envelope kinds used for intent classification."""

    UNSPECIFIED = "unspecified"
    COMMAND = "command"
    EVENT = "event"
    RESULT = "result"


@dataclass(frozen=True)
class EnvelopeMeta:
    """Canonical metadata attached to every envelope result."""

    envelope_id: str
    trace_id: str
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str
    principal: str


def new_meta(
    *,
    kind: EnvelopeKind,
    source: str,
    principal: str,
    trace_id: str | None = None,
    parent_id: str = "",
    timestamp: datetime | None = None,
) -> EnvelopeMeta:
    """Build ``EnvelopeMeta`` with fresh ids and a UTC timestamp."""
    if timestamp is None:
        timestamp = datetime.now(UTC)
    elif timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return EnvelopeMeta(
        envelope_id=generate_ulid_str(),
        trace_id=trace_id or generate_ulid_str(),
        parent_id=parent_id,
        timestamp=timestamp.astimezone(UTC),
        kind=kind,
        source=source,
        principal=principal,
    )


def child_meta(parent: EnvelopeMeta, *, source: str) -> EnvelopeMeta:
    """Derive metadata for a nested call that shares the parent trace."""
    return new_meta(
        kind=EnvelopeKind.COMMAND,
        source=source,
        principal=parent.principal,
        trace_id=parent.trace_id,
        parent_id=parent.envelope_id,
    )
