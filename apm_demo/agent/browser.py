from __future__ import annotations

import json
from time import perf_counter
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apm_demo.agent.transaction import Transaction


class BrowserTimingHeader:
    """Browser monitoring snippet for a page; safe to use even when empty."""

    def __init__(self, info: dict | None = None) -> None:
        self._info = info

    def without_tags(self) -> str:
        if self._info is None:
            return ""
        return "window.NREUM||(NREUM={});NREUM.info=" + json.dumps(self._info, separators=(",", ":"), sort_keys=True)

    def with_tags(self) -> str | None:
        if self._info is None:
            return None
        return f'<script type="text/javascript">{self.without_tags()}</script>'


def browser_timing_header(txn: Transaction | None) -> BrowserTimingHeader:
    if txn is None or txn.finalized:
        return BrowserTimingHeader()

    config = txn.application.config
    if not config.browser_application_id:
        return BrowserTimingHeader()

    return BrowserTimingHeader(
        {
            "applicationID": config.browser_application_id,
            "applicationTime": int((perf_counter() - txn.start_time) * 1000),
            "beacon": config.browser_beacon,
            "queueTime": 0,
            "traceId": txn.trace_id,
            "transactionName": txn.name,
        }
    )
