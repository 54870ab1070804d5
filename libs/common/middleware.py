"""Request tracing middleware for FastAPI.

Every request gets an X-Request-ID (propagated when the caller sends one) and
a single completion log line carrying the status, the duration and whatever
domain fields the route bound with ``bind_request_fields``.

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
    get_request_fields,
    set_request_context,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
QUIET_PATHS = frozenset({"/health"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds the request ID for logging and echoes it on the response.

    The ID is also stored on ``request.state`` so exception handlers that run
    after this middleware has unwound can still report it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get(REQUEST_ID_HEADER),
            path=request.url.path,
            method=request.method,
        )
        request.state.request_id = request_id
        quiet = request.url.path in QUIET_PATHS
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed with unhandled exception",
                extra={
                    "extra_fields": {
                        **get_request_fields(),
                        "error": str(e),
                        "duration_ms": _elapsed_ms(start_time),
                    }
                },
            )
            raise
        else:
            if not quiet or response.status_code >= 400:
                log = logger.warning if response.status_code >= 400 else logger.info
                log(
                    f"{request.method} {request.url.path} -> {response.status_code}",
                    extra={
                        "extra_fields": {
                            **get_request_fields(),
                            "status_code": response.status_code,
                            "duration_ms": _elapsed_ms(start_time),
                        }
                    },
                )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_request_context()


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


def add_observability_middleware(app: FastAPI) -> None:
    """Configure logging and install the request tracing middleware."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
