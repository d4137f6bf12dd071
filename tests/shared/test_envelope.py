"""Tests for envelope model, builder, and metadata behavior."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from packages.guard_shared.envelope import (
    Envelope,
    EnvelopeKind,
    EnvelopeMeta,
    child_meta,
    failure,
    new_meta,
    success,
    validate_meta,
)
from packages.guard_shared.errors import ErrorCategory, ErrorDetail


def _meta() -> EnvelopeMeta:
    """Return deterministic metadata for envelope tests."""
    return new_meta(
        kind=EnvelopeKind.RESULT,
        source="service_snapshot_store",
        principal="operator",
        timestamp=datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC),
        trace_id="trace-1",
    )


def _error(code: str = "INVALID_ARGUMENT") -> ErrorDetail:
    return ErrorDetail(
        code=code,
        message="Invalid input",
        category=ErrorCategory.VALIDATION,
        retryable=False,
    )


def test_success_builder_returns_ok_envelope_with_payload() -> None:
    envelope = success(meta=_meta(), payload={"snapshot_id": "snap-01ABC"})

    assert envelope.ok is True
    assert envelope.has_payload is True
    assert envelope.value == {"snapshot_id": "snap-01ABC"}
    assert envelope.errors == []


def test_failure_builder_can_carry_decision_context() -> None:
    """A policy failure keeps its payload so callers see why it was refused."""
    envelope = failure(
        meta=_meta(),
        errors=[_error("SYNC_BLOCKED")],
        payload={"blocked": True},
    )

    assert envelope.ok is False
    assert envelope.value == {"blocked": True}
    assert [item.code for item in envelope.errors] == ["SYNC_BLOCKED"]


def test_failure_without_payload_has_no_value() -> None:
    envelope = failure(meta=_meta(), errors=[_error()])

    assert envelope.has_payload is False
    assert envelope.value is None


def test_envelope_model_validation_rejects_invalid_error_shape() -> None:
    with pytest.raises(ValidationError):
        Envelope[dict[str, str]].model_validate(
            {
                "metadata": _meta(),
                "payload": {"value": {"snapshot_id": "snap-01ABC"}},
                "errors": [{"code": "BAD"}],
            }
        )


def test_new_meta_normalizes_timestamps_to_utc() -> None:
    naive = new_meta(
        kind=EnvelopeKind.EVENT,
        source="test",
        principal="system",
        timestamp=datetime(2026, 1, 1, 8, 0),
    )
    offset = new_meta(
        kind=EnvelopeKind.EVENT,
        source="test",
        principal="system",
        timestamp=datetime(2026, 1, 1, 8, 0, tzinfo=timezone(timedelta(hours=2))),
    )

    assert naive.timestamp == datetime(2026, 1, 1, 8, 0, tzinfo=UTC)
    assert offset.timestamp.hour == 6
    assert offset.timestamp.tzinfo == UTC
    assert naive.envelope_id != offset.envelope_id


def test_child_meta_shares_trace_and_links_parent() -> None:
    parent = _meta()

    child = child_meta(parent, source="service_evolution_workflow")

    assert child.trace_id == "trace-1"
    assert child.parent_id == parent.envelope_id
    assert child.principal == "operator"
    assert child.kind is EnvelopeKind.COMMAND
    assert child.source == "service_evolution_workflow"


@pytest.mark.parametrize(
    ("changes", "message"),
    [
        ({"source": ""}, "metadata.source is required"),
        ({"principal": ""}, "metadata.principal is required"),
        ({"trace_id": ""}, "metadata.trace_id is required"),
        ({"kind": EnvelopeKind.UNSPECIFIED}, "metadata.kind must be specified"),
    ],
)
def test_validate_meta_names_the_offending_field(
    changes: dict[str, object], message: str
) -> None:
    with pytest.raises(ValueError, match=message):
        validate_meta(replace(_meta(), **changes))


def test_validate_meta_accepts_complete_metadata() -> None:
    validate_meta(_meta())
