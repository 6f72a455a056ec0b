from __future__ import annotations

import logging

import httpx

from apm_demo.agent import Transaction, start_external_segment
from apm_demo.config import get_settings

_client: httpx.AsyncClient | None = None

logger = logging.getLogger(__name__)


def set_http_client(client: httpx.AsyncClient | None) -> None:
    global _client
    _client = client


def get_http_client() -> httpx.AsyncClient:
    global _client
    if _client is None:
        settings = get_settings()
        _client = httpx.AsyncClient(timeout=settings.external_timeout_seconds)
    return _client


async def close_http_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def fetch_external(txn: Transaction | None, url: str | None = None) -> httpx.Response:
    """GET ``url`` inside an external segment. Raises httpx.HTTPError on failure."""

    client = get_http_client()
    request = client.build_request("GET", url or get_settings().external_url)

    segment = start_external_segment(txn, request)
    try:
        response = await client.send(request)
        segment.set_status_code(response.status_code)
    finally:
        segment.end()

    logger.info("external call %s -> %s", request.url, response.status_code)
    return response
