from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

from fastapi import FastAPI

from apm_demo import __version__
from apm_demo.agent import Application
from apm_demo.api.demos import router as demos_router
from apm_demo.api.metrics import router as metrics_router
from apm_demo.observability.middleware import TransactionMiddleware
from apm_demo.services.external import close_http_client


def create_app(application: Application) -> FastAPI:
    """Build the web app around an already constructed agent application."""

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        harvester = asyncio.create_task(application.run_harvest_loop())
        try:
            yield
        finally:
            harvester.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await harvester
            await close_http_client()
            application.shutdown()

    app = FastAPI(title="APM Demo", version=__version__, lifespan=lifespan)
    app.state.apm_application = application
    app.add_middleware(TransactionMiddleware, application=application)
    app.include_router(demos_router)
    app.include_router(metrics_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
