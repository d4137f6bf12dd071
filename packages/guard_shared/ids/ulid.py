"""ULID generation helpers for sortable, collision-resistant identifiers.

A ULID is 128 bits: a 48-bit millisecond timestamp followed by 80 bits of
cryptographically secure randomness, rendered as 26 Crockford Base32 chars.
Snapshot, request, notification, and alert ids all use a readable prefix in
front of one ULID.
"""

from __future__ import annotations

import secrets
import time

_ULID_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DECODE_TABLE = {char: index for index, char in enumerate(_ULID_ALPHABET)}
_TIMESTAMP_LIMIT = 1 << 48


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    """Generate a new ULID in canonical 26-char string format."""
    ts_ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
    if ts_ms < 0 or ts_ms >= _TIMESTAMP_LIMIT:
        raise ValueError("timestamp_ms out of ULID 48-bit range")

    number = (ts_ms << 80) | secrets.randbits(80)
    chars: list[str] = []
    for _ in range(26):
        number, remainder = divmod(number, 32)
        chars.append(_ULID_ALPHABET[remainder])
    return "".join(reversed(chars))


def ulid_timestamp_ms(value: str) -> int:
    """Return the millisecond timestamp encoded in one ULID string."""
    candidate = value.strip().upper()
    if len(candidate) != 26:
        raise ValueError("ULID string must be exactly 26 characters")
    number = 0
    for char in candidate:
        if char not in _DECODE_TABLE:
            raise ValueError(f"Invalid ULID character: {char!r}")
        number = (number << 5) | _DECODE_TABLE[char]
    return number >> 80


def generate_prefixed_id(prefix: str, *, timestamp_ms: int | None = None) -> str:
    """Return ``<prefix>-<ULID>`` for human-readable typed identifiers."""
    return f"{prefix}-{generate_ulid_str(timestamp_ms=timestamp_ms)}"
