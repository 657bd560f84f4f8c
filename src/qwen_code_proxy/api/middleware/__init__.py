"""API middleware."""

from .api_key_auth import APIKeyAuthMiddleware
from .cors import setup_cors_middleware
from .errors import setup_error_handlers


__all__ = [
    "APIKeyAuthMiddleware",
    "setup_cors_middleware",
    "setup_error_handlers",
]
