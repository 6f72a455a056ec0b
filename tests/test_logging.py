import logging

from apm_demo.observability.logging import _add_service, _resolve_level


def test_log_levels_accept_names_and_numbers() -> None:
    assert _resolve_level("debug") == logging.DEBUG
    assert _resolve_level(logging.WARNING) == logging.WARNING
    assert _resolve_level("not-a-level") == logging.INFO


def test_service_name_is_stamped_but_not_overridden() -> None:
    add_service = _add_service("POC")

    assert add_service(None, "info", {"event": "x"})["service"] == "POC"
    assert add_service(None, "info", {"event": "x", "service": "other"})["service"] == "other"
