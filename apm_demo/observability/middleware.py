from __future__ import annotations

import uuid
from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.datastructures import MutableHeaders

from apm_demo.agent import context
from apm_demo.agent.application import Application


class TransactionMiddleware:
    """Wraps every HTTP request in a transaction, with request_id context and access logs."""

    def __init__(self, app: Callable[..., Any], application: Application) -> None:
        self.app = app
        self.application = application
        # Don't turn the metrics snapshot into transactions of its own.
        self._excluded_paths = {"/api/metrics"}

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        path = scope.get("path")
        method = scope.get("method")

        txn = None if path in self._excluded_paths else context.attach(scope, self.application)
        token = context.activate(txn)

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=path,
            method=method,
            trace_id=txn.trace_id if txn is not None else None,
        )

        start = perf_counter()
        status_code: int = 500

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = MutableHeaders(scope=message)
                headers["X-Request-ID"] = request_id

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if txn is not None:
                txn.notice_error(exc)
            raise
        finally:
            elapsed_ms = (perf_counter() - start) * 1000.0

            if txn is not None:
                route = scope.get("route")
                route_path = getattr(route, "path", None)
                if route_path:
                    txn.apply_default_name(f"{method} {route_path}")
                elif scope.get("endpoint") is None:
                    # Unrouted paths share one name so they don't explode the metric table.
                    txn.apply_default_name(f"{method} NotFound")
                txn.add_agent_attribute("request.method", method)
                txn.add_agent_attribute("request.uri", path)
                txn.add_agent_attribute("http.statusCode", status_code)
                txn.end()

            structlog.get_logger("access").info(
                "http_request",
                status_code=status_code,
                elapsed_ms=round(elapsed_ms, 2),
            )

            context.deactivate(token)
            structlog.contextvars.clear_contextvars()
