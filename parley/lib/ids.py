"""Time-ordered identifiers for agents, messages and notifications."""

from __future__ import annotations

import secrets
import threading
import time
import uuid as _uuid

_state_lock = threading.Lock()
_last_ms = 0
_sequence = 0

_USE_NATIVE = hasattr(_uuid, "uuid7")


def uuid7() -> str:
    """UUID v7: 48-bit millisecond timestamp, 12-bit sequence, 62 random bits."""
    if _USE_NATIVE:
        return str(_uuid.uuid7())

    global _last_ms, _sequence

    with _state_lock:
        ms = int(time.time() * 1000)
        if ms <= _last_ms:
            # Same (or regressed) millisecond: keep ordering by bumping the sequence.
            _sequence += 1
            if _sequence > 0xFFF:
                _last_ms += 1
                _sequence = secrets.randbits(8)
            ms = _last_ms
        else:
            _last_ms = ms
            _sequence = secrets.randbits(8)

        value = (ms & 0xFFFFFFFFFFFF) << 80
        value |= 0x7 << 76
        value |= _sequence << 64
        value |= 0b10 << 62
        value |= secrets.randbits(62)
        return str(_uuid.UUID(int=value))


def agent_id() -> str:
    return f"agent-{uuid7()}"


def message_id() -> str:
    return f"msg-{uuid7()}"


def notification_id() -> str:
    return f"ntf-{uuid7()}"


def short_id(full_id: str) -> str:
    """Last 8 chars: the random tail, safe for display."""
    return full_id[-8:]


__all__ = ["agent_id", "message_id", "notification_id", "short_id", "uuid7"]
