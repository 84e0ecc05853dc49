"""
Request metrics middleware: method, path, status code and duration per HTTP request
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ppc_advisor.observability.metrics import REQUEST_DURATION, REQUEST_TOTAL

SKIPPED_PATHS = ("/metrics", "/health")


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in SKIPPED_PATHS:
            return await call_next(request)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000

        endpoint = request.url.path
        REQUEST_TOTAL.labels(
            method=request.method, endpoint=endpoint, status_code=str(response.status_code)
        ).inc()
        REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration_ms)
        return response
