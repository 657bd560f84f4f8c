"""HTTP API for the Qwen proxy."""

from .app import create_app


__all__ = ["create_app"]
