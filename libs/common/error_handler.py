"""App-level handling for exceptions no route translated.

Clients only understand ``{success, message, error}`` failure bodies, so an
unexpected exception is answered in that shape with a 500. An optional hook
runs after the response is sent, typically to email an alert.

Usage:
    from libs.common.error_handler import add_exception_handlers

    add_exception_handlers(app, on_unhandled=alert_backend_error)
"""
from typing import Any, Awaitable, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

# (method, path, exception, request_id)
UnhandledHook = Callable[[str, str, BaseException, Optional[str]], Awaitable[Any]]

PRODUCTION_ERROR_TEXT = "An error occurred. Our team has been notified."


def error_body(message: str, error: str) -> dict[str, Any]:
    return {"success": False, "message": message, "error": error}


def add_exception_handlers(
    app: FastAPI,
    on_unhandled: Optional[UnhandledHook] = None,
    message: str = "Internal server error",
) -> None:
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        logger.error(
            f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
            extra={"extra_fields": {"request_id": request_id, "error": str(exc)}},
        )

        if get_settings().ENVIRONMENT == "production":
            error = PRODUCTION_ERROR_TEXT
        else:
            error = str(exc) or type(exc).__name__

        background = None
        # No alerts for HEAD requests
        if on_unhandled is not None and request.method != "HEAD":
            background = BackgroundTask(
                on_unhandled, request.method, request.url.path, exc, request_id
            )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(message, error),
            background=background,
        )

    app.add_exception_handler(Exception, unhandled_exception_handler)
