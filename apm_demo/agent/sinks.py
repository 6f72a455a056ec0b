from __future__ import annotations

from dataclasses import asdict
from threading import Lock
from typing import Any, Protocol

import structlog

from apm_demo.agent.records import CustomEvent, TransactionRecord


class ReportingSink(Protocol):
    def report_transaction(self, record: TransactionRecord) -> None: ...

    def report_event(self, event: CustomEvent) -> None: ...

    def report_metrics(self, metrics: dict[str, dict[str, Any]]) -> None: ...


class InMemorySink:
    """Keeps everything it is handed; used by tests and local inspection."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._transactions: list[TransactionRecord] = []
        self._events: list[CustomEvent] = []
        self._harvests: list[dict[str, dict[str, Any]]] = []

    def report_transaction(self, record: TransactionRecord) -> None:
        with self._lock:
            self._transactions.append(record)

    def report_event(self, event: CustomEvent) -> None:
        with self._lock:
            self._events.append(event)

    def report_metrics(self, metrics: dict[str, dict[str, Any]]) -> None:
        with self._lock:
            self._harvests.append(metrics)

    @property
    def transactions(self) -> list[TransactionRecord]:
        with self._lock:
            return list(self._transactions)

    @property
    def events(self) -> list[CustomEvent]:
        with self._lock:
            return list(self._events)

    @property
    def harvests(self) -> list[dict[str, dict[str, Any]]]:
        with self._lock:
            return list(self._harvests)

    def transaction_named(self, name: str) -> TransactionRecord | None:
        for record in reversed(self.transactions):
            if record.name == name:
                return record
        return None

    def clear(self) -> None:
        with self._lock:
            self._transactions.clear()
            self._events.clear()
            self._harvests.clear()


class LoggingSink:
    """Emits every record as a structured log event."""

    def __init__(self, logger_name: str = "apm") -> None:
        self._logger = structlog.get_logger(logger_name)

    def report_transaction(self, record: TransactionRecord) -> None:
        self._logger.info(
            "apm_transaction",
            transaction=record.name,
            guid=record.guid,
            trace_id=record.trace_id,
            duration_ms=round(record.duration_ms, 2),
            attributes=record.attributes,
            agent_attributes=record.agent_attributes,
            segments=[
                {
                    "name": seg.name,
                    "kind": seg.kind,
                    "span_id": seg.span_id,
                    "parent_id": seg.parent_id,
                    "duration_ms": round(seg.duration_ms, 2),
                    **seg.extra,
                }
                for seg in record.segments
            ],
            errors=[asdict(err) for err in record.errors],
            unfinished_segments=record.unfinished_segments,
        )

    def report_event(self, event: CustomEvent) -> None:
        self._logger.info("apm_custom_event", event_type=event.event_type, attributes=event.attributes)

    def report_metrics(self, metrics: dict[str, dict[str, Any]]) -> None:
        self._logger.info("apm_metrics", metrics=metrics)
