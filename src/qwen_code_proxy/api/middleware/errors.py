"""Error handling for the Qwen proxy API.

Turns every ProxyError subclass into an OpenAI-style error body using its
own error_type and status_code.
"""

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog import get_logger

from qwen_code_proxy.exceptions import ErrorType, ProxyError


logger = get_logger(__name__)


def _build_error_response(status_code: int, error_type: str, message: str) -> JSONResponse:
    """Build standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"type": error_type, "message": message}},
    )


def setup_error_handlers(app: FastAPI) -> None:
    """Setup error handlers for the FastAPI application."""

    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
        """Handle all ProxyError subclasses using their built-in attributes."""
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            type(exc).__name__,
            error_type=exc.error_type.value,
            error_message=exc.message,
            status_code=exc.status_code,
            request_method=request.method,
            request_url=request.url.path,
        )
        return _build_error_response(exc.status_code, exc.error_type.value, exc.message)

    @app.exception_handler(httpx.HTTPError)
    async def upstream_transport_error_handler(
        request: Request, exc: httpx.HTTPError
    ) -> JSONResponse:
        """Provider unreachable after retries."""
        logger.error(
            "upstream_transport_error",
            error=repr(exc),
            request_url=request.url.path,
        )
        return _build_error_response(
            status.HTTP_502_BAD_GATEWAY,
            ErrorType.UPSTREAM.value,
            f"Upstream request failed: {exc}",
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.debug("request_validation_failed", errors=exc.errors(), request_url=request.url.path)
        return _build_error_response(
            status.HTTP_400_BAD_REQUEST,
            ErrorType.INVALID_REQUEST.value,
            "Request body must be a JSON object",
        )

    @app.exception_handler(HTTPException)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle FastAPI and Starlette HTTP exceptions."""
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            logger.debug("http_404", request_url=request.url.path)
        else:
            logger.warning(
                "http_exception",
                status_code=exc.status_code,
                error_message=exc.detail,
                request_url=request.url.path,
            )
        return _build_error_response(exc.status_code, "http_error", str(exc.detail))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle all other unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            error_message=str(exc),
            request_method=request.method,
            request_url=request.url.path,
            exc_info=True,
        )
        return _build_error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            ErrorType.INTERNAL_SERVER.value,
            "An internal server error occurred",
        )
