"""Health and readiness check routes."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from config import settings
from database import check_connection
from services.cache import cache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/ready")
async def ready() -> dict:
    """Lightweight readiness check — no external calls."""
    return {"status": "ok", "service": "painel-financeiro-api", "commit": settings.git_sha}


@router.get("/health")
async def health():
    """Deep health check that verifies database and cache connectivity."""
    result = {"status": "ok", "service": "painel-financeiro-api", "commit": settings.git_sha}

    try:
        await check_connection()
        result["database"] = "ok"
    except Exception as e:
        logger.exception("Database health check failed")
        result["database"] = "error"
        result["database_error"] = str(e)

    try:
        await cache.ping()
        result["cache"] = "ok"
    except Exception as e:
        logger.exception("Cache health check failed")
        result["cache"] = "error"
        result["cache_error"] = str(e)

    if "error" in (result["database"], result["cache"]):
        result["status"] = "degraded"
        return JSONResponse(result, status_code=503)
    return result
