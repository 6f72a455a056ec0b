from __future__ import annotations

import argparse

import structlog
import uvicorn

from apm_demo.agent import Application, ConfigurationError
from apm_demo.config import get_settings
from apm_demo.main import create_app
from apm_demo.observability.logging import configure_logging


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="APM instrumentation demo service")
    parser.add_argument("--host", default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    parser.add_argument("--log-level", default=settings.log_level, help="Root log level")
    parser.add_argument("--log-format", choices=["json", "console"], default=settings.log_format, help="Log output format")
    args = parser.parse_args()

    configure_logging(args.log_level, fmt=args.log_format, service=settings.apm_app_name)

    try:
        application = Application.from_settings(settings)
    except ConfigurationError as exc:
        structlog.get_logger("apm").error("apm_startup_failed", error=str(exc))
        raise SystemExit(1) from exc

    uvicorn.run(create_app(application), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
