"""Utility modules."""

from .id_generator import generate_completion_id


__all__ = ["generate_completion_id"]
