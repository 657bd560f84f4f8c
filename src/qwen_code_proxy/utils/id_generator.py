"""Utility functions for generating consistent IDs across the application."""

import shortuuid


def generate_completion_id() -> str:
    """Generate an OpenAI-style completion ID.

    Returns:
        str: ``chatcmpl-`` followed by a short URL-safe ID
    """
    return f"chatcmpl-{shortuuid.uuid()}"
