import logging
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.validation import validation_error_content

logger = logging.getLogger(__name__)


def _response_headers(request: Request, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
    """RateLimit-* headers of the current request (if it was counted), plus `extra`."""
    headers = {}
    rate_limit = getattr(request.state, "rate_limit", None)
    if rate_limit is not None:
        headers.update(rate_limit.headers())
    if extra:
        headers.update(extra)
    return headers


def register_error_handlers(app: FastAPI) -> None:
    """Every error leaves the API as {"error": ...}; validation errors add "details"."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # 404 lookups, 413 bodies, 429 rate limiting, 500 persistence failures, unknown routes
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=_response_headers(request, exc.headers),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=validation_error_content(exc.errors()),
            headers=_response_headers(request),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
            headers=_response_headers(request),
        )
