"""OpenAI-compatible chat completion and model routes."""

from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import StreamingResponse
from structlog import get_logger

from qwen_code_proxy.adapters.openai.models import get_models_list
from qwen_code_proxy.api.dependencies import Services
from qwen_code_proxy.exceptions import ValidationError


logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["openai"])

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def validate_chat_request(body: dict[str, Any]) -> None:
    messages = body.get("messages")
    if not isinstance(messages, list) or not messages:
        raise ValidationError("messages is a required field and must be a non-empty array")


@router.post("/chat/completions", response_model=None)
async def chat_completions(
    services: Services,
    body: dict[str, Any] = Body(...),
) -> dict[str, Any] | StreamingResponse:
    """Create a chat completion, streamed as SSE when ``stream`` is true."""
    validate_chat_request(body)
    stream = bool(body.get("stream"))
    logger.info(
        "chat_completion_request",
        model=body.get("model"),
        stream=stream,
        message_count=len(body["messages"]),
    )

    if stream:
        events = await services.executor.stream(body)
        return StreamingResponse(events, media_type="text/event-stream", headers=STREAM_HEADERS)
    return await services.executor.complete(body)


@router.get("/models", response_model=None)
async def list_models() -> dict[str, Any]:
    """List the models served through the proxy."""
    return get_models_list()
