"""OpenAI-compatible response shaping."""

from .models import get_models_list, normalize_chunk, normalize_completion
from .streaming import OpenAISSEFormatter


__all__ = [
    "OpenAISSEFormatter",
    "get_models_list",
    "normalize_chunk",
    "normalize_completion",
]
