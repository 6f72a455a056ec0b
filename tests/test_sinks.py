from __future__ import annotations

import asyncio
import contextlib

import pytest
from structlog.testing import capture_logs

import apm_demo.__main__ as cli
from apm_demo.agent import AgentConfig, Application, InMemorySink, LoggingSink, start_segment
from apm_demo.config import get_settings

LICENSE_KEY = "0123456789abcdef0123456789abcdef01234567"


def test_logging_sink_emits_structured_records() -> None:
    application = Application(AgentConfig(app_name="POC", license_key=LICENSE_KEY), LoggingSink())

    with capture_logs() as logs:
        txn = application.start_transaction("GET /segments")
        with start_segment(txn, "f1"):
            pass
        txn.end()
        application.record_custom_event("my_event_type", {"Int": 123})
        application.harvest()

    events = {entry["event"]: entry for entry in logs}
    assert events["apm_transaction"]["transaction"] == "GET /segments"
    assert events["apm_transaction"]["segments"][0]["name"] == "f1"
    assert events["apm_custom_event"]["attributes"] == {"Int": 123}
    assert "WebTransaction/GET /segments" in events["apm_metrics"]["metrics"]


def test_unfinished_segments_are_logged() -> None:
    application = Application(AgentConfig(app_name="POC", license_key=LICENSE_KEY), InMemorySink())

    with capture_logs() as logs:
        txn = application.start_transaction("GET /leaky")
        start_segment(txn, "open")
        txn.end()

    warnings = [entry for entry in logs if entry["event"] == "apm_unfinished_segments"]
    assert warnings and warnings[0]["unfinished_segments"] == 1


async def test_harvest_loop_flushes_periodically(sink: InMemorySink) -> None:
    application = Application(
        AgentConfig(app_name="POC", license_key=LICENSE_KEY, harvest_interval_seconds=0.01), sink
    )
    application.record_custom_metric("HeaderLength", 4.0)

    loop = asyncio.create_task(application.run_harvest_loop())
    try:
        for _ in range(100):
            if sink.harvests:
                break
            await asyncio.sleep(0.01)
    finally:
        loop.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await loop

    assert sink.harvests[0]["Custom/HeaderLength"]["total"] == 4.0


def test_cli_exits_when_agent_cannot_start(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APM_LICENSE_KEY", "")
    get_settings.cache_clear()
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli.uvicorn, "run", lambda *a, **kw: pytest.fail("server must not start"))
    monkeypatch.setattr("sys.argv", ["apm-demo"])

    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    assert excinfo.value.code == 1


def test_cli_serves_app_on_configured_port(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: dict = {}
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kw: calls.update(app=app, **kw))
    monkeypatch.setattr("sys.argv", ["apm-demo", "--port", "9001"])

    cli.main()

    assert calls["port"] == 9001
    assert calls["app"].state.apm_application.config.app_name == "POC"
