"""Error Handlers — global exception handlers for the MeetHalf API.

Invariants:
    - MeetHalfError → structured JSON with error code, message, severity, context
    - RequestValidationError → 400 VALIDATION_ERROR with field-level details
    - RateLimitExceeded → 429 RATE_LIMITED
    - Exception (catch-all) → never leaks internal details

Design Decisions:
    - Four layers: domain (MeetHalfError), validation (Pydantic), throttling (slowapi),
      catch-all (Exception)
    - Extracted from main.py to keep the entry point's import fan-out small
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from meethalf.core.errors import ErrorSeverity, MeetHalfError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_meethalf_error_handler(app)
    _register_validation_error_handler(app)
    _register_rate_limit_handler(app)
    _register_generic_error_handler(app)


def _register_meethalf_error_handler(app: FastAPI) -> None:
    @app.exception_handler(MeetHalfError)
    async def meethalf_error_handler(request: Request, exc: MeetHalfError):
        """Handle all MeetHalf domain/infrastructure errors."""
        log = logger.error if exc.http_status >= 500 else logger.warning
        log(
            f"MeetHalfError: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_validation_error_handler(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_rate_limit_handler(app: FastAPI) -> None:
    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(
            f"Rate limit exceeded: {exc.detail}",
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": {
                    "code": "RATE_LIMITED",
                    "message": "Too many requests, please try again later",
                    "category": "rate_limit",
                    "severity": ErrorSeverity.WARNING.value,
                },
            },
        )


def _register_generic_error_handler(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    """Build structured validation error response."""
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": "validation",
            "severity": ErrorSeverity.ERROR.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
