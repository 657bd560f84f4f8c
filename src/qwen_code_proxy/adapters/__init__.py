"""Adapters between the provider and OpenAI-compatible clients."""
