"""Qwen Code Proxy - OpenAI-compatible proxy over a pool of Qwen OAuth accounts."""

from ._version import __version__


__all__ = ["__version__"]
