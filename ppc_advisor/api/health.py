"""
Health check: liveness + database status
"""

import structlog
from fastapi import APIRouter

from ppc_advisor.db.engine import check_database

router = APIRouter(tags=["health"])
log = structlog.get_logger()


@router.get("/health")
async def health_check():
    status = {"status": "ok", "postgres": "ok"}
    error = await check_database()
    if error is not None:
        status["postgres"] = f"error: {error}"
        status["status"] = "degraded"
        log.error("Postgres health check failed", error=error)
    return status
