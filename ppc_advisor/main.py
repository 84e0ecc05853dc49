"""
FastAPI application entry point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from ppc_advisor.config import get_settings
from ppc_advisor.db.engine import check_database, engine
from ppc_advisor.observability.logging_config import setup_logging
from ppc_advisor.observability.metrics_middleware import MetricsMiddleware
from ppc_advisor.observability.request_logger import RequestLoggerMiddleware

settings = get_settings()

# logging is configured at import time
setup_logging(env=settings.ENV, level=settings.LOG_LEVEL, service=settings.APP_NAME)
log = structlog.get_logger()

from ppc_advisor.api.agent import ads_client, router as agent_router  # noqa: E402
from ppc_advisor.api.health import router as health_router  # noqa: E402


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Fail fast on an unreachable database; release pools on shutdown"""
    log.info("Application starting", env=settings.ENV, app=settings.APP_NAME)

    error = await check_database()
    if error is not None:
        log.error("Postgres unreachable", error=error)
        raise RuntimeError(f"Postgres unreachable: {error}")
    log.info("Postgres connection ok")

    yield

    await ads_client.aclose()
    await engine.dispose()
    log.info("Application stopped, resources released")


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware (registered bottom-up, executed top-down) ──
app.add_middleware(RequestLoggerMiddleware)
app.add_middleware(MetricsMiddleware)

# ── Prometheus endpoint ──
app.mount("/metrics", make_asgi_app())

# ── Routers ──
app.include_router(health_router)
app.include_router(agent_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("ppc_advisor.main:app", host="0.0.0.0", port=settings.APP_PORT, reload=True)
