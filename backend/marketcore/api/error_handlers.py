"""Error Handlers — global exception handlers for the marketplace API.

Invariants:
    - MarketError → structured JSON with code, category, severity, retryable
    - RequestValidationError → field-level error details (400)
    - Exception (catch-all) → never leaks internal details
    - Transient errors carry Retry-After when the error knows a delay

Design Decisions:
    - Three-layer handler: domain (MarketError), validation (Pydantic), catch-all (Exception)
    - Extracted from main.py so the app module stays a wiring list
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from marketcore.core.errors import MarketError, ErrorSeverity
from marketcore.infrastructure.observability import error_extra

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_market_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_market_error_handler(app: FastAPI) -> None:

    @app.exception_handler(MarketError)
    async def market_error_handler(request: Request, exc: MarketError):
        """Handle all domain/infrastructure errors."""
        log = logger.error if exc.retryable else logger.warning
        log(
            f"MarketError: {exc.message}",
            extra={**error_extra(exc), "path": request.url.path},
        )
        headers = None
        if exc.context.retry_after_ms:
            headers = {"Retry-After": str(max(1, exc.context.retry_after_ms // 1000))}
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
            headers=headers,
        )


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        """Handle Pydantic validation errors."""
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
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
                    "retryable": False,
                },
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": "validation",
            "severity": ErrorSeverity.ERROR.value,
            "retryable": False,
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
