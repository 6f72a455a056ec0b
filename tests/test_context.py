from __future__ import annotations

import asyncio

from starlette.requests import Request

from apm_demo.agent import (
    AgentConfig,
    Application,
    InMemorySink,
    attach,
    current_transaction,
    get_transaction,
    start_segment,
)
from apm_demo.agent import context


def _scope(path: str = "/segments", headers: list[tuple[bytes, bytes]] | None = None) -> dict:
    return {"type": "http", "method": "GET", "path": path, "headers": headers or []}


def test_retrieve_after_attach_returns_same_transaction(application: Application) -> None:
    scope = _scope()
    txn = attach(scope, application)

    assert txn is not None
    assert txn.name == "GET /segments"
    assert get_transaction(Request(scope)) is txn
    assert attach(scope, application) is txn


def test_retrieve_without_attach_is_absent() -> None:
    assert get_transaction(Request(_scope())) is None
    assert current_transaction() is None


def test_disabled_application_attaches_nothing(sink: InMemorySink) -> None:
    application = Application(AgentConfig(app_name="POC", enabled=False), sink)
    scope = _scope()

    assert attach(scope, application) is None
    assert get_transaction(Request(scope)) is None


def test_activate_binds_current_transaction(application: Application) -> None:
    txn = attach(_scope(), application)
    token = context.activate(txn)
    try:
        assert current_transaction() is txn
    finally:
        context.deactivate(token)
    assert current_transaction() is None


def test_attach_continues_inbound_trace(application: Application) -> None:
    trace_id = "4bf92f3577b34da6a3ce929d0e0e4736"
    headers = [(b"traceparent", f"00-{trace_id}-00f067aa0ba902b7-01".encode())]
    txn = attach(_scope(headers=headers), application)

    assert txn is not None
    assert txn.trace_id == trace_id
    record = txn.end()
    assert record is not None
    assert record.parent_span_id == "00f067aa0ba902b7"


def test_attach_ignores_malformed_traceparent(application: Application) -> None:
    txn = attach(_scope(headers=[(b"traceparent", b"not-a-trace")]), application)

    assert txn is not None
    assert len(txn.trace_id) == 32


async def test_sibling_tasks_sharing_current_transaction_nest_independently(
    application: Application, sink: InMemorySink
) -> None:
    txn = attach(_scope(), application)
    token = context.activate(txn)

    async def work(name: str, delay: float) -> str:
        with start_segment(current_transaction(), name) as outer:
            await asyncio.sleep(delay)
            with start_segment(current_transaction(), f"{name}-inner"):
                await asyncio.sleep(0)
        return outer.span_id

    try:
        a_span, b_span = await asyncio.gather(work("a", 0.02), work("b", 0.01))
    finally:
        context.deactivate(token)
    txn.end()

    segments = {seg.name: seg for seg in sink.transactions[0].segments}
    assert segments["a"].parent_id is None
    assert segments["b"].parent_id is None
    assert segments["a-inner"].parent_id == a_span
    assert segments["b-inner"].parent_id == b_span
