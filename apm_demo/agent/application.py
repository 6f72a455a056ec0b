from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from apm_demo.agent.attributes import MAX_USER_ATTRIBUTES, InvalidAttributeError, validate_attribute
from apm_demo.agent.errors import ConfigurationError
from apm_demo.agent.metrics import MetricTable
from apm_demo.agent.records import CustomEvent, TransactionRecord
from apm_demo.agent.sinks import InMemorySink, LoggingSink, ReportingSink
from apm_demo.agent.tracing import parse_traceparent
from apm_demo.agent.transaction import Transaction

if TYPE_CHECKING:
    from apm_demo.config import Settings

VERSION = "1.0.0"

LICENSE_KEY_LENGTH = 40
MAX_EVENT_TYPE_LENGTH = 255
_EVENT_TYPE_RE = re.compile(r"[a-zA-Z0-9:_ ]+")

log = structlog.get_logger("apm")


@dataclass(frozen=True)
class AgentConfig:
    app_name: str
    license_key: str = ""
    enabled: bool = True
    distributed_tracing_enabled: bool = True
    browser_application_id: str | None = None
    browser_beacon: str = "bam.nr-data.net"
    harvest_interval_seconds: float = 60.0

    def validate(self) -> None:
        if not self.enabled:
            return
        if not self.app_name.strip():
            raise ConfigurationError("app name is required")
        if len(self.license_key) != LICENSE_KEY_LENGTH:
            raise ConfigurationError(
                f"license key must be {LICENSE_KEY_LENGTH} characters, got {len(self.license_key)}"
            )
        if self.harvest_interval_seconds <= 0:
            raise ConfigurationError("harvest interval must be positive")


class Application:
    """The monitoring agent for one service.

    Constructed once at startup and handed to the web app factory. Starts
    transactions, takes custom events and metrics, and forwards finished
    records to its reporting sink.
    """

    def __init__(self, config: AgentConfig, sink: ReportingSink | None = None) -> None:
        config.validate()
        self.config = config
        self.sink: ReportingSink = sink if sink is not None else LoggingSink()
        self.metrics = MetricTable()

    @classmethod
    def from_settings(cls, settings: Settings, sink: ReportingSink | None = None) -> Application:
        config = AgentConfig(
            app_name=settings.apm_app_name,
            license_key=settings.apm_license_key,
            enabled=settings.apm_enabled,
            distributed_tracing_enabled=settings.apm_distributed_tracing_enabled,
            browser_application_id=settings.apm_browser_application_id or None,
            browser_beacon=settings.apm_browser_beacon,
            harvest_interval_seconds=settings.apm_harvest_interval_seconds,
        )
        if sink is None:
            sink = InMemorySink() if settings.apm_sink == "memory" else LoggingSink()
        return cls(config, sink)

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def start_transaction(self, name: str, traceparent: str | None = None) -> Transaction | None:
        if not self.enabled:
            return None
        parent = parse_traceparent(traceparent) if self.config.distributed_tracing_enabled else None
        return Transaction.start(self, name, parent=parent)

    def finish_transaction(self, record: TransactionRecord, ignored: bool = False) -> None:
        if ignored:
            log.debug("apm_transaction_ignored", transaction=record.name)
            return

        if record.unfinished_segments:
            log.warning(
                "apm_unfinished_segments",
                transaction=record.name,
                unfinished_segments=record.unfinished_segments,
            )

        elapsed_ms = record.duration_ms
        self.metrics.observe("HttpDispatcher", elapsed_ms)
        self.metrics.observe(f"WebTransaction/{record.name}", elapsed_ms)
        if record.errors:
            self.metrics.observe("Errors/all", float(len(record.errors)))
        self.sink.report_transaction(record)

    def record_custom_event(self, event_type: str, attributes: dict[str, Any]) -> bool:
        """Validate and report a custom event; invalid events are logged and dropped."""

        if not self.enabled:
            return False
        if not event_type or len(event_type) > MAX_EVENT_TYPE_LENGTH or not _EVENT_TYPE_RE.fullmatch(event_type):
            log.warning("apm_custom_event_rejected", event_type=event_type, reason="invalid event type")
            return False
        if len(attributes) > MAX_USER_ATTRIBUTES:
            log.warning("apm_custom_event_rejected", event_type=event_type, reason="too many attributes")
            return False

        clean: dict[str, Any] = {}
        for key, value in attributes.items():
            try:
                k, v = validate_attribute(key, value)
            except InvalidAttributeError as exc:
                log.warning("apm_custom_event_rejected", event_type=event_type, reason=str(exc))
                return False
            clean[k] = v

        self.sink.report_event(CustomEvent(event_type=event_type, timestamp=time.time(), attributes=clean))
        return True

    def record_custom_metric(self, name: str, value: float) -> None:
        if not self.enabled:
            return
        self.metrics.observe(f"Custom/{name}", value)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return self.metrics.snapshot()

    def harvest(self) -> dict[str, dict[str, Any]]:
        """Flush aggregated metrics to the sink."""

        drained = self.metrics.drain()
        if drained:
            self.sink.report_metrics(drained)
        return drained

    async def run_harvest_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.harvest_interval_seconds)
            try:
                self.harvest()
            except Exception:
                # A failing sink must not take the harvest loop down.
                log.exception("apm_harvest_failed")

    def shutdown(self) -> None:
        self.harvest()
        log.info("apm_shutdown", app_name=self.config.app_name)
