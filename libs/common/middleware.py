"""Observability middleware for FastAPI.

Provides:
- Request ID generation and propagation
- Request/response timing
- Structured logging for all requests

Usage:
    from libs.common.middleware import add_observability_middleware

    app = FastAPI()
    add_observability_middleware(app)
"""
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

_QUIET_PATHS = {"/health"}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Sets request context for tracing and logs the request lifecycle.
    The X-Request-ID header is propagated when present, generated otherwise,
    and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get("X-Request-ID"),
            path=request.url.path,
            method=request.method,
        )

        start_time = time.perf_counter()
        quiet = request.url.path in _QUIET_PATHS

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000

            if not quiet:
                log_level = "warning" if response.status_code >= 400 else "info"
                getattr(logger, log_level)(
                    "Request completed",
                    extra={
                        "extra_fields": {
                            "status_code": response.status_code,
                            "duration_ms": round(duration_ms, 2),
                        }
                    },
                )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "Request failed with unhandled exception",
                extra={
                    "extra_fields": {
                        "error": str(e),
                        "duration_ms": round(duration_ms, 2),
                    }
                },
            )
            raise

        finally:
            clear_request_context()


def add_observability_middleware(app: FastAPI) -> None:
    """
    Add observability middleware to a FastAPI app.

    Call this after creating the app but before adding routes.
    """
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
