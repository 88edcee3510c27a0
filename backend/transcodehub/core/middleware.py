"""HTTP middleware: request context, access log and Prometheus metrics."""

import logging
import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from transcodehub.core.logging import request_context
from transcodehub.core.metrics import (
    HTTP_REQUEST_DURATION_SECONDS,
    HTTP_REQUESTS_IN_PROGRESS,
    HTTP_REQUESTS_TOTAL,
)

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Paths that would only add noise to the access log
QUIET_PATHS = frozenset(("/health", "/metrics"))

_DOWNLOAD_PATH = re.compile(r"^(.*/download)/[^/]+/[^/]+$")


def endpoint_label(request: Request) -> str:
    """Route template for the request, so object names never become labels."""
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if template:
        return template
    return _DOWNLOAD_PATH.sub(r"\1/{type}/{name}", request.url.path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts requests and observes latency per method and route."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        in_progress = HTTP_REQUESTS_IN_PROGRESS.labels(method=method)
        in_progress.inc()

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            in_progress.dec()
            endpoint = endpoint_label(request)
            HTTP_REQUEST_DURATION_SECONDS.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - start
            )
            HTTP_REQUESTS_TOTAL.labels(
                method=method, endpoint=endpoint, status_code=str(status_code)
            ).inc()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Scopes a correlation ID to the request and echoes it back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        with request_context(request.headers.get(CORRELATION_ID_HEADER)) as correlation_id:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Writes one access log line per request."""

    logger = logging.getLogger("transcodehub.access")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self.logger.exception(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            raise

        if request.url.path not in QUIET_PATHS:
            self.logger.info(
                "%s %s %s",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                    "client_ip": request.client.host if request.client else None,
                },
            )
        return response
