import time
import uuid

import structlog
from fastapi import FastAPI, Request

from app.core.config import settings

logger = structlog.get_logger()

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"


def register_http_middleware(app: FastAPI) -> None:
    """Attach the per-request middleware stack.

    Starlette runs the last registered middleware first, so the request
    context (correlation id, timing, access log) wraps the header one.
    """

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = HSTS_HEADER
        return response

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or uuid.uuid4().hex
        request.state.correlation_id = correlation_id
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        started = time.perf_counter()
        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )
        try:
            response = await call_next(request)
            elapsed = time.perf_counter() - started
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(elapsed * 1000, 2),
            )
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response
