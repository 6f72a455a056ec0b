from __future__ import annotations

import enum
from time import perf_counter
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from apm_demo.agent.records import SegmentRecord
from apm_demo.agent.tracing import TraceParent, new_span_id

if TYPE_CHECKING:
    from apm_demo.agent.transaction import Transaction


class Segment:
    """A timed span of work inside a transaction.

    Built with ``txn=None`` the segment still times itself but reports
    nowhere. Ending a segment twice is a misuse; the second call is ignored.
    """

    kind = "generic"

    def __init__(self, txn: Transaction | None, name: str) -> None:
        self._txn = txn
        self.name = name
        self.span_id = new_span_id()
        self.parent_id = txn._open_segment(self) if txn is not None else None
        self.start = perf_counter()
        self.end_time: float | None = None

    @property
    def ended(self) -> bool:
        return self.end_time is not None

    def extra(self) -> dict[str, Any]:
        return {}

    def end(self) -> None:
        if self.end_time is not None:
            return
        self.end_time = max(perf_counter(), self.start)
        if self._txn is None:
            return
        record = SegmentRecord(
            name=self.name,
            span_id=self.span_id,
            parent_id=self.parent_id,
            start=self.start,
            end=self.end_time,
            kind=self.kind,
            extra=self.extra(),
        )
        self._txn._close_segment(self, record)

    def __enter__(self) -> Segment:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.end()


class ExternalSegment(Segment):
    kind = "external"

    def __init__(self, txn: Transaction | None, url: str, method: str = "GET") -> None:
        self.url = url
        self.method = method.upper()
        self.host = urlsplit(url).hostname or "unknown"
        self.status_code: int | None = None
        super().__init__(txn, f"External/{self.host}/http/{self.method}")

    def set_status_code(self, status_code: int) -> None:
        self.status_code = int(status_code)

    def outbound_headers(self) -> dict[str, str]:
        """Headers that carry the trace to the callee, empty when tracing is off."""

        if self._txn is None or not self._txn.application.config.distributed_tracing_enabled:
            return {}
        return {"traceparent": TraceParent(trace_id=self._txn.trace_id, parent_id=self.span_id).header_value()}

    def extra(self) -> dict[str, Any]:
        return {"url": self.url, "host": self.host, "method": self.method, "status_code": self.status_code}


class DestinationType(str, enum.Enum):
    QUEUE = "Queue"
    TOPIC = "Topic"
    TEMP_QUEUE = "TempQueue"
    TEMP_TOPIC = "TempTopic"

    @property
    def temporary(self) -> bool:
        return self in (DestinationType.TEMP_QUEUE, DestinationType.TEMP_TOPIC)


class MessageProducerSegment(Segment):
    kind = "message"

    def __init__(
        self,
        txn: Transaction | None,
        library: str,
        destination_type: DestinationType = DestinationType.QUEUE,
        destination_name: str = "",
    ) -> None:
        self.library = library
        self.destination_type = DestinationType(destination_type)
        self.destination_name = destination_name
        if self.destination_type.temporary:
            target = "Temp"
        else:
            target = f"Named/{destination_name or 'Unknown'}"
        kind = self.destination_type.value.replace("Temp", "")
        super().__init__(txn, f"MessageBroker/{library}/{kind}/Produce/{target}")

    def extra(self) -> dict[str, Any]:
        return {
            "library": self.library,
            "destination_type": self.destination_type.value,
            "destination_name": self.destination_name,
        }


def start_segment(txn: Transaction | None, name: str) -> Segment:
    return Segment(txn, name)


def start_external_segment(txn: Transaction | None, request: Any) -> ExternalSegment:
    """Start an external segment for an outgoing request.

    ``request`` is anything with ``url``, ``method`` and a mutable ``headers``
    mapping (an ``httpx.Request`` for instance); trace headers are added to it.
    """

    segment = ExternalSegment(txn, url=str(request.url), method=str(request.method))
    headers = segment.outbound_headers()
    if headers:
        request.headers.update(headers)
    return segment


def start_message_segment(
    txn: Transaction | None,
    library: str,
    destination_type: DestinationType = DestinationType.QUEUE,
    destination_name: str = "",
) -> MessageProducerSegment:
    return MessageProducerSegment(txn, library, destination_type, destination_name)
