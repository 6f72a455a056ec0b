"""Carry the request's transaction to handler code.

The middleware attaches a transaction to the ASGI scope and to a context
variable. Handlers usually ask for it explicitly with
``Depends(get_transaction)``; code without the request at hand can fall back
to :func:`current_transaction`. Both return ``None`` when nothing was
attached, and callers skip instrumentation in that case.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from contextvars import ContextVar, Token
from typing import Any

from starlette.requests import Request

from apm_demo.agent.application import Application
from apm_demo.agent.transaction import Transaction

STATE_KEY = "apm_transaction"

_current: ContextVar[Transaction | None] = ContextVar("apm_transaction", default=None)


def _header(scope: MutableMapping[str, Any], name: bytes) -> str | None:
    for key, value in scope.get("headers") or []:
        if key.lower() == name:
            return value.decode("latin-1")
    return None


def attach(scope: MutableMapping[str, Any], application: Application) -> Transaction | None:
    """Create the transaction for a request, or return the one already attached."""

    state = scope.setdefault("state", {})
    existing = state.get(STATE_KEY)
    if existing is not None:
        return existing

    name = f"{scope.get('method', 'GET')} {scope.get('path', '/')}"
    txn = application.start_transaction(name, traceparent=_header(scope, b"traceparent"))
    if txn is not None:
        state[STATE_KEY] = txn
    return txn


def activate(txn: Transaction | None) -> Token:
    return _current.set(txn)


def deactivate(token: Token) -> None:
    _current.reset(token)


def current_transaction() -> Transaction | None:
    return _current.get()


def get_transaction(request: Request) -> Transaction | None:
    """FastAPI dependency returning the request's transaction, if any."""

    state = request.scope.get("state") or {}
    return state.get(STATE_KEY)


def get_application(request: Request) -> Application:
    """FastAPI dependency returning the agent application injected at startup."""

    return request.app.state.apm_application
