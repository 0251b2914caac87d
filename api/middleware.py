"""
Global middleware and exception handlers.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from auth import messages
from auth.email import EmailDeliveryError
from auth.errors import AuthError
from auth.jwt import TokenError

logger = logging.getLogger(__name__)


def register_middleware(app: FastAPI) -> None:
    """Attach any app-level middleware."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug("%s %s %.3fs", request.method, request.url.path, elapsed)
        return response


def register_exception_handlers(app: FastAPI) -> None:
    """Render auth errors as ``{"message", "reason"}`` JSON."""

    @app.exception_handler(AuthError)
    async def _handle_auth_error(request: Request, exc: AuthError):
        logger.info(
            "%s %s → %d %s", request.method, request.url.path, exc.status_code, exc.reason
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.message, "reason": exc.reason},
        )

    @app.exception_handler(TokenError)
    async def _handle_token_error(request: Request, exc: TokenError):
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"message": str(exc) or messages.TOKEN_INVALID, "reason": exc.reason},
        )

    @app.exception_handler(EmailDeliveryError)
    async def _handle_email_error(request: Request, exc: EmailDeliveryError):
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"message": str(exc), "reason": "email_delivery_failed"},
        )
