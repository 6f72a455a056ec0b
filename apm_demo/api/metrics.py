from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from apm_demo.agent import Application
from apm_demo.agent.context import get_application
from apm_demo.config import get_settings


router = APIRouter(prefix="/api", tags=["metrics"])


@router.get("/metrics")
async def metrics(application: Application = Depends(get_application)) -> dict:
    settings = get_settings()
    if not settings.enable_metrics_endpoint:
        raise HTTPException(status_code=404, detail="Not found")
    return {
        "app_name": application.config.app_name,
        "enabled": application.enabled,
        "metrics": application.snapshot(),
    }
