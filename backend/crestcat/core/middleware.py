"""
HTTP Middleware

Request context, access logging, security headers and Prometheus HTTP
metrics. Registered by ``add_middlewares``; the last one added runs first.
"""

import time
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Counter, Gauge, Histogram
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from crestcat.core.logging import correlation_id, get_logger, request_id, user_id
from crestcat.core.settings import settings

# Initialize logger
logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method"]
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "route", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total count of HTTP requests",
    ["method", "route", "status"]
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Cache-Control": "no-store",
}

# Never written to the access log
REDACTED_HEADERS = frozenset({"authorization", "cookie", "x-api-key"})


def _route_template(request: Request) -> str:
    """Matched route path such as ``/api/v1/investments/{investment_id}``."""
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds correlation and request ids for the lifetime of a request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cid = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        tokens = (
            correlation_id.set(cid),
            request_id.set(str(uuid.uuid4())),
            user_id.set(None),
        )
        request.state.correlation_id = cid
        try:
            response = await call_next(request)
        finally:
            for var, token in zip((correlation_id, request_id, user_id), tokens):
                var.reset(token)
        response.headers[CORRELATION_HEADER] = cid
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One log line per request, with its outcome and duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 3)

        principal = getattr(request.state, "principal", None)
        level = "warning" if response.status_code >= 500 else "info"
        getattr(logger, level)(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "route": _route_template(request),
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "client_ip": request.client.host if request.client else None,
                "principal_role": principal.role.value if principal else None,
                "headers": {
                    name: ("***REDACTED***" if name in REDACTED_HEADERS else value)
                    for name, value in request.headers.items()
                },
            }
        )
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if settings.app.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class PrometheusMiddleware(BaseHTTPMiddleware):
    """HTTP request count, latency and concurrency, labelled by route template."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        method = request.method
        if request.url.path.startswith("/metrics"):
            return await call_next(request)

        REQUESTS_IN_PROGRESS.labels(method=method).inc()
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = _route_template(request)
            REQUEST_LATENCY.labels(method=method, route=route, status=status_code).observe(
                time.perf_counter() - started
            )
            REQUESTS_TOTAL.labels(method=method, route=route, status=status_code).inc()
            REQUESTS_IN_PROGRESS.labels(method=method).dec()


def add_middlewares(app: FastAPI) -> None:
    """Register the middleware stack on ``app``."""
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    logger.info("Middleware registered")
