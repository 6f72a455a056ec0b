"""Per-request transaction state and the handles that share it.

A :class:`Transaction` is a handle onto shared state. ``fork()`` hands out
another handle onto the same state for use from a separate task or thread;
each handle keeps its stack of open segments in a context variable, so
nesting follows the call path of the task that opened them even when
sibling tasks share one handle. All mutation goes through the shared lock.
"""

from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar
from threading import Lock
from time import perf_counter
from typing import TYPE_CHECKING, Any

from apm_demo.agent.attributes import MAX_USER_ATTRIBUTES, InvalidAttributeError, validate_attribute
from apm_demo.agent.browser import BrowserTimingHeader, browser_timing_header
from apm_demo.agent.records import ErrorRecord, SegmentRecord, TransactionRecord
from apm_demo.agent.segments import Segment
from apm_demo.agent.tracing import TraceParent, new_trace_id

if TYPE_CHECKING:
    from apm_demo.agent.application import Application

logger = logging.getLogger(__name__)

MAX_ERRORS_PER_TRANSACTION = 5


class NoticedError(Exception):
    """An error with an explicit class and attributes, for ``notice_error``."""

    def __init__(self, message: str, error_class: str | None = None, attributes: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_class = error_class
        self.attributes = dict(attributes or {})


def _error_record(err: BaseException) -> ErrorRecord:
    if isinstance(err, NoticedError):
        attributes: dict[str, Any] = {}
        for key, value in err.attributes.items():
            try:
                k, v = validate_attribute(key, value)
            except InvalidAttributeError as exc:
                logger.warning("error attribute dropped: %s", exc)
                continue
            attributes[k] = v
        return ErrorRecord(
            message=err.message,
            error_class=err.error_class or f"{type(err).__module__}:{type(err).__qualname__}",
            attributes=attributes,
        )
    return ErrorRecord(message=str(err), error_class=f"{type(err).__module__}:{type(err).__qualname__}")


class _TransactionState:
    def __init__(self, name: str, trace_id: str, parent_span_id: str | None) -> None:
        self.lock = Lock()
        self.guid = uuid.uuid4().hex[:16]
        self.trace_id = trace_id
        self.parent_span_id = parent_span_id
        self.name = name
        self.name_set_by_user = False
        self.start = perf_counter()
        self.attributes: dict[str, Any] = {}
        self.agent_attributes: dict[str, Any] = {}
        self.segments: list[SegmentRecord] = []
        self.errors: list[ErrorRecord] = []
        self.open_segments = 0
        self.ignored = False
        self.finalized = False


class Transaction:
    def __init__(
        self,
        application: Application,
        state: _TransactionState,
        base_parent_id: str | None = None,
    ) -> None:
        self._application = application
        self._state = state
        self._base_parent_id = base_parent_id
        # Tuples, so a task that copies the context never mutates its parent's stack.
        self._stack: ContextVar[tuple[Segment, ...]] = ContextVar("apm_segment_stack", default=())

    @classmethod
    def start(cls, application: Application, name: str, parent: TraceParent | None = None) -> Transaction:
        trace_id = parent.trace_id if parent is not None else new_trace_id()
        parent_span_id = parent.parent_id if parent is not None else None
        return cls(application, _TransactionState(name=name, trace_id=trace_id, parent_span_id=parent_span_id))

    @property
    def application(self) -> Application:
        return self._application

    @property
    def guid(self) -> str:
        return self._state.guid

    @property
    def trace_id(self) -> str:
        return self._state.trace_id

    @property
    def name(self) -> str:
        with self._state.lock:
            return self._state.name

    @property
    def ignored(self) -> bool:
        with self._state.lock:
            return self._state.ignored

    @property
    def finalized(self) -> bool:
        with self._state.lock:
            return self._state.finalized

    @property
    def start_time(self) -> float:
        return self._state.start

    def shares_state_with(self, other: Transaction) -> bool:
        return self._state is other._state

    def set_name(self, name: str) -> None:
        with self._state.lock:
            if self._state.finalized:
                logger.debug("set_name after finalization dropped: %s", name)
                return
            self._state.name = name
            self._state.name_set_by_user = True

    def apply_default_name(self, name: str) -> None:
        """Rename unless a handler already chose a name."""

        with self._state.lock:
            if self._state.finalized or self._state.name_set_by_user:
                return
            self._state.name = name

    def add_attribute(self, key: str, value: Any) -> bool:
        try:
            key, value = validate_attribute(key, value)
        except InvalidAttributeError as exc:
            logger.warning("attribute dropped: %s", exc)
            return False

        with self._state.lock:
            if self._state.finalized:
                logger.debug("attribute %s after finalization dropped", key)
                return False
            attrs = self._state.attributes
            if key not in attrs and len(attrs) >= MAX_USER_ATTRIBUTES:
                logger.warning("attribute %s dropped: limit of %d reached", key, MAX_USER_ATTRIBUTES)
                return False
            attrs[key] = value
            return True

    def add_agent_attribute(self, key: str, value: Any) -> None:
        with self._state.lock:
            if not self._state.finalized:
                self._state.agent_attributes[key] = value

    def notice_error(self, err: BaseException) -> None:
        record = _error_record(err)
        with self._state.lock:
            if self._state.finalized:
                logger.debug("error after finalization dropped: %s", record.message)
                return
            if len(self._state.errors) >= MAX_ERRORS_PER_TRANSACTION:
                return
            self._state.errors.append(record)

    def ignore(self) -> None:
        with self._state.lock:
            self._state.ignored = True

    def fork(self) -> Transaction:
        """Return a handle on the same transaction for another task or thread.

        The caller must join the task before the transaction is finalized;
        segments it ends afterwards are dropped.
        """

        return Transaction(self._application, self._state, base_parent_id=self.current_span_id())

    def current_span_id(self) -> str | None:
        stack = self._stack.get()
        return stack[-1].span_id if stack else self._base_parent_id

    def start_segment(self, name: str) -> Segment:
        return Segment(self, name)

    def browser_timing_header(self) -> BrowserTimingHeader:
        return browser_timing_header(self)

    def _open_segment(self, segment: Segment) -> str | None:
        parent_id = self.current_span_id()
        self._stack.set(self._stack.get() + (segment,))
        with self._state.lock:
            self._state.open_segments += 1
        return parent_id

    def _close_segment(self, segment: Segment, record: SegmentRecord) -> None:
        stack = self._stack.get()
        if segment in stack:
            self._stack.set(tuple(s for s in stack if s is not segment))
        with self._state.lock:
            self._state.open_segments -= 1
            if self._state.finalized:
                logger.debug("segment %s ended after finalization dropped", record.name)
                return
            self._state.segments.append(record)

    def end(self) -> TransactionRecord | None:
        """Finalize the transaction and hand it to the application.

        Returns the record, or None if it was already finalized.
        """

        with self._state.lock:
            if self._state.finalized:
                return None
            self._state.finalized = True
            end = perf_counter()
            state = self._state
            record = TransactionRecord(
                guid=state.guid,
                trace_id=state.trace_id,
                name=state.name,
                start=state.start,
                end=end,
                attributes=dict(state.attributes),
                agent_attributes=dict(state.agent_attributes),
                segments=tuple(sorted(state.segments, key=lambda s: s.start)),
                errors=tuple(state.errors),
                unfinished_segments=state.open_segments,
                parent_span_id=state.parent_span_id,
            )
            ignored = state.ignored

        self._application.finish_transaction(record, ignored=ignored)
        return record


def set_name(txn: Transaction | None, name: str) -> None:
    if txn is not None:
        txn.set_name(name)


def add_attribute(txn: Transaction | None, key: str, value: Any) -> None:
    if txn is not None:
        txn.add_attribute(key, value)


def notice_error(txn: Transaction | None, err: BaseException) -> None:
    if txn is not None:
        txn.notice_error(err)


def ignore(txn: Transaction | None) -> None:
    if txn is not None:
        txn.ignore()
