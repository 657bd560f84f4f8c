"""OpenAI response envelopes.

The provider already speaks the OpenAI schema; these helpers only fill in
fields it may leave out.
"""

import time
from typing import Any

from qwen_code_proxy.utils.id_generator import generate_completion_id


SUPPORTED_MODELS: tuple[dict[str, Any], ...] = (
    {
        "id": "qwen3-coder-plus",
        "object": "model",
        "created": 1754686206,
        "owned_by": "qwen",
    },
)


def normalize_completion(data: dict[str, Any], model: str) -> dict[str, Any]:
    """Wrap a non-streaming provider response in the chat.completion envelope."""
    return {
        "id": data.get("id") or generate_completion_id(),
        "object": "chat.completion",
        "created": data.get("created") or int(time.time()),
        "model": data.get("model") or model,
        "choices": data.get("choices") or [],
        "usage": data.get("usage"),
    }


def normalize_chunk(
    data: dict[str, Any],
    model: str,
    fallback_id: str,
    created: int | None = None,
) -> dict[str, Any]:
    """Wrap one upstream stream payload in the chat.completion.chunk envelope."""
    chunk: dict[str, Any] = {
        "id": data.get("id") or fallback_id,
        "object": "chat.completion.chunk",
        "created": data.get("created") or created or int(time.time()),
        "model": data.get("model") or model,
        "choices": data.get("choices") or [],
    }
    if data.get("usage"):
        chunk["usage"] = data["usage"]
    return chunk


def get_models_list() -> dict[str, Any]:
    return {"object": "list", "data": [dict(model) for model in SUPPORTED_MODELS]}
