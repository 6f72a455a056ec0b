from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SegmentRecord:
    name: str
    span_id: str
    parent_id: str | None
    start: float
    end: float
    kind: str = "generic"
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        return (self.end - self.start) * 1000.0


@dataclass(frozen=True)
class ErrorRecord:
    message: str
    error_class: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransactionRecord:
    guid: str
    trace_id: str
    name: str
    start: float
    end: float
    attributes: dict[str, Any]
    agent_attributes: dict[str, Any]
    segments: tuple[SegmentRecord, ...]
    errors: tuple[ErrorRecord, ...]
    unfinished_segments: int = 0
    parent_span_id: str | None = None

    @property
    def duration_ms(self) -> float:
        return (self.end - self.start) * 1000.0


@dataclass(frozen=True)
class CustomEvent:
    event_type: str
    timestamp: float
    attributes: dict[str, Any]
