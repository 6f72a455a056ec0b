from __future__ import annotations

import re
import secrets
from dataclasses import dataclass

_TRACEPARENT_RE = re.compile(r"^([0-9a-f]{2})-([0-9a-f]{32})-([0-9a-f]{16})-([0-9a-f]{2})$")
_INVALID_TRACE_ID = "0" * 32
_INVALID_SPAN_ID = "0" * 16


def new_trace_id() -> str:
    return secrets.token_hex(16)


def new_span_id() -> str:
    return secrets.token_hex(8)


@dataclass(frozen=True)
class TraceParent:
    trace_id: str
    parent_id: str
    sampled: bool = True

    def header_value(self) -> str:
        flags = "01" if self.sampled else "00"
        return f"00-{self.trace_id}-{self.parent_id}-{flags}"


def parse_traceparent(value: str | None) -> TraceParent | None:
    """Parse a W3C traceparent header; malformed values are treated as absent."""

    if not value:
        return None
    match = _TRACEPARENT_RE.match(value.strip().lower())
    if match is None:
        return None
    version, trace_id, parent_id, flags = match.groups()
    if version == "ff" or trace_id == _INVALID_TRACE_ID or parent_id == _INVALID_SPAN_ID:
        return None
    return TraceParent(trace_id=trace_id, parent_id=parent_id, sampled=bool(int(flags, 16) & 0x01))
