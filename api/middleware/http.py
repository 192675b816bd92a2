"""
HTTP middleware: request ids, timing and metrics, security headers and the
request body cap.
"""

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from infrastructure.config.settings import settings
from services.request_metrics import request_metrics

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 5 * 1024 * 1024

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

# Polled by load balancers, not worth a log line each
QUIET_PREFIX = "/api/v1/health"


def resolve_request_id(incoming: str | None) -> str:
    """Echo a caller-supplied id only when it is a UUID, so it cannot inject into logs."""
    if incoming:
        try:
            return str(uuid.UUID(incoming))
        except ValueError:
            pass
    return str(uuid.uuid4())


def body_too_large(request: Request) -> bool:
    if request.method not in ("POST", "PUT", "PATCH"):
        return False
    length = request.headers.get("content-length", "")
    return length.isdigit() and int(length) > MAX_BODY_BYTES


def register_http_middleware(app: FastAPI) -> None:
    """Attach the middleware stack. The last one registered runs first."""

    @app.middleware("http")
    async def reject_oversized_body(request: Request, call_next):
        if body_too_large(request):
            return JSONResponse(
                status_code=413,
                content={"detail": "Request body too large (max 5MB)"},
            )
        return await call_next(request)

    @app.middleware("http")
    async def time_and_record(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"

        path = request.url.path
        request_metrics.record(request.method, path, response.status_code, elapsed_ms)
        if not path.startswith(QUIET_PREFIX):
            logger.info(
                "%s %s %s %.1fms",
                request.method,
                path,
                response.status_code,
                elapsed_ms,
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "method": request.method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": round(elapsed_ms, 1),
                },
            )
        return response

    @app.middleware("http")
    async def tag_request(request: Request, call_next):
        request_id = resolve_request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        response.headers.update(SECURITY_HEADERS)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response
