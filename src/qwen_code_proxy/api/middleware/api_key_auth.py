"""API key authentication middleware for protecting the /v1 routes."""

import secrets

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette import status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from qwen_code_proxy.config.settings import Settings
from qwen_code_proxy.exceptions import ErrorType


logger = structlog.get_logger(__name__)

PROTECTED_PREFIX = "/v1/"


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": {"type": ErrorType.AUTHENTICATION.value, "message": message}},
        headers={"WWW-Authenticate": "Bearer"},
    )


class APIKeyAuthMiddleware(BaseHTTPMiddleware):
    """Requires ``Authorization: Bearer <key>`` on /v1 routes when client keys are configured."""

    def __init__(self, app: ASGIApp, settings: Settings) -> None:
        super().__init__(app)
        self.api_keys = settings.security.api_key_list

    def _extract_bearer_token(self, request: Request) -> str | None:
        """Extract bearer token from Authorization header."""
        auth_header = request.headers.get("authorization")
        if not auth_header:
            return None

        # Parse "Bearer <token>"
        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return None

        return parts[1]

    def _is_valid(self, token: str) -> bool:
        return any(secrets.compare_digest(token, key) for key in self.api_keys)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if not self.api_keys or not path.startswith(PROTECTED_PREFIX) or request.method == "OPTIONS":
            return await call_next(request)

        token = self._extract_bearer_token(request)
        if not token:
            logger.warning("api_key_auth_missing", path=path, method=request.method)
            return _unauthorized("Missing API key. Use 'Authorization: Bearer <key>'.")

        if not self._is_valid(token):
            logger.warning("api_key_auth_invalid", path=path, method=request.method)
            return _unauthorized("Invalid API key")

        return await call_next(request)
