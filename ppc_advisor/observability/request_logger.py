"""
Request logging middleware

Binds a trace_id to every request, taken from X-Trace-ID when the caller
(the scheduler) sends a well-formed one, and logs one line per finished
request. /health and /metrics log at debug level.
"""

import re
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ppc_advisor.observability.context import new_trace_id, trace_id_var

log = structlog.get_logger()

QUIET_PATHS = ("/health", "/metrics")
_TRACE_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def resolve_trace_id(header: str | None) -> str:
    """Caller-supplied trace id, or a fresh one when missing / malformed"""
    if header and _TRACE_ID.match(header):
        return header
    return new_trace_id()


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = resolve_trace_id(request.headers.get("X-Trace-ID"))
        token = trace_id_var.set(trace_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(trace_id=trace_id)

        path = request.url.path
        emit = log.debug if path.startswith(QUIET_PATHS) else log.info
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            log.exception(
                "Request failed",
                method=request.method,
                path=path,
                duration_ms=int((time.perf_counter() - start) * 1000),
            )
            raise
        finally:
            trace_id_var.reset(token)

        duration_ms = int((time.perf_counter() - start) * 1000)
        emit(
            "Request finished",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        response.headers["X-Trace-ID"] = trace_id
        response.headers["X-Duration-Ms"] = str(duration_ms)
        return response
