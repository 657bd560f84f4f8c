"""API routes."""

from .debug import router as debug_router
from .openai import router as openai_router
from .root import router as root_router


__all__ = ["debug_router", "openai_router", "root_router"]
