"""
Health check endpoint.

Lightweight check for load balancers and uptime monitors. Also reports
how many conversations are held in memory and which playbooks are loaded.
"""

import time
from typing import Any

from fastapi import APIRouter, Depends

from app.config import Settings, get_settings
from app.engine.playbook import playbook_engine
from app.store.conversation_store import conversation_store

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    summary="Health Check",
    description="Returns service status, version, uptime, and in-memory load.",
    response_model=dict[str, Any],
)
async def health_check(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    stats = await conversation_store.get_stats()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "uptime_seconds": round(time.time() - _start_time, 2),
        "frameworks": [f.name.value for f in playbook_engine.all_frameworks()],
        **stats,
    }
