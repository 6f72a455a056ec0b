"""One route per agent capability.

Every handler treats a missing transaction as normal and skips the
instrumentation: monitoring must never fail a request.
"""

from __future__ import annotations

import asyncio
import random

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from apm_demo.agent import (
    VERSION,
    DestinationType,
    NoticedError,
    Transaction,
    add_attribute,
    browser_timing_header,
    get_transaction,
    ignore,
    notice_error,
    set_name,
    start_message_segment,
    start_segment,
)
from apm_demo.services.external import fetch_external

router = APIRouter(tags=["demos"], default_response_class=PlainTextResponse)


def _coin_flip() -> bool:
    return random.randint(0, 1) == 0


@router.get("/txn")
async def endpoint_access_transaction(txn: Transaction | None = Depends(get_transaction)) -> str:
    set_name(txn, "test-txn")
    return "test Transaction"


@router.get("/test-connection")
async def index() -> str:
    return "hello world"


@router.get("/version")
async def version() -> str:
    return f"APM Demo Agent Version: {VERSION}"


@router.get("/notice_error")
async def notice_error_demo(txn: Transaction | None = Depends(get_transaction)) -> str:
    notice_error(txn, Exception("my error message"))
    return "noticing an error"


@router.get("/notice_error_with_attributes")
async def notice_error_with_attributes(txn: Transaction | None = Depends(get_transaction)) -> str:
    notice_error(
        txn,
        NoticedError(
            "something went very wrong",
            error_class="errors are aggregated by class",
            attributes={"error no.": 97232},
        ),
    )
    return "noticing an error"


@router.get("/custom_event")
async def custom_event(txn: Transaction | None = Depends(get_transaction)) -> str:
    if txn is not None:
        txn.application.record_custom_event(
            "my_event_type",
            {
                "message": "hello world",
                "Float": 0.603,
                "Int": 123,
                "Bool": True,
            },
        )
    return "recording a custom event"


@router.get("/set_name")
async def set_name_demo(txn: Transaction | None = Depends(get_transaction)) -> str:
    set_name(txn, "other-name")
    return "changing the transaction's name"


@router.get("/add_attribute")
async def add_attribute_demo(txn: Transaction | None = Depends(get_transaction)) -> str:
    add_attribute(txn, "myString", "hello")
    add_attribute(txn, "myInt", 123)
    return "adding attributes"


@router.get("/ignore")
async def ignore_demo(txn: Transaction | None = Depends(get_transaction)) -> str:
    if _coin_flip():
        ignore(txn)
        return "ignoring the transaction"
    return "not ignoring the transaction"


@router.get("/segments")
async def segments(txn: Transaction | None = Depends(get_transaction)) -> str:
    with start_segment(txn, "f1"):
        with start_segment(txn, "f2"):
            body = "segments!"
            await asyncio.sleep(0.010)
        await asyncio.sleep(0.015)
    await asyncio.sleep(0.020)
    return body


@router.get("/message")
async def message(txn: Transaction | None = Depends(get_transaction)) -> str:
    segment = start_message_segment(
        txn,
        library="Library",
        destination_type=DestinationType.QUEUE,
        destination_name="Destination name",
    )
    try:
        await asyncio.sleep(0.020)
    finally:
        segment.end()
    return "producing a message queue message"


@router.get("/external")
async def external(txn: Transaction | None = Depends(get_transaction)) -> Response:
    try:
        resp = await fetch_external(txn)
    except httpx.HTTPError as exc:
        notice_error(txn, exc)
        return PlainTextResponse(str(exc) or type(exc).__name__)
    return Response(content=resp.content, media_type=resp.headers.get("content-type"))


async def _background_work(txn: Transaction | None) -> None:
    with start_segment(txn, "async"):
        await asyncio.sleep(0.100)


@router.get("/async")
async def async_demo(txn: Transaction | None = Depends(get_transaction)) -> str:
    task = asyncio.create_task(_background_work(txn.fork() if txn is not None else None))

    with start_segment(txn, "wg.Wait"):
        await task
    return "done!"


@router.get("/custommetric")
async def custom_metric(request: Request, txn: Transaction | None = Depends(get_transaction)) -> str:
    # Reported as "Custom/HeaderLength".
    for _, value in request.headers.items():
        if txn is not None:
            txn.application.record_custom_metric("HeaderLength", float(len(value)))
    return "custom metric recorded"


@router.get("/browser", response_class=HTMLResponse)
async def browser(txn: Transaction | None = Depends(get_transaction)) -> str:
    # The header is always safe to use, even without a transaction.
    js = browser_timing_header(txn).with_tags()
    return f"{js or ''}browser header page"
