"""Shared identifier primitives."""

from packages.guard_shared.ids.ulid import (
    generate_prefixed_id,
    generate_ulid_str,
    ulid_timestamp_ms,
)

__all__ = ["generate_prefixed_id", "generate_ulid_str", "ulid_timestamp_ms"]
