"""SSE framing for OpenAI-style chat-completion streams."""

from typing import Any

import orjson


SSE_DONE = "data: [DONE]\n\n"


class OpenAISSEFormatter:
    """Renders chunk payloads and the stream terminator as SSE ``data:`` frames."""

    @staticmethod
    def format_data_event(data: dict[str, Any]) -> str:
        return f"data: {orjson.dumps(data).decode()}\n\n"

    @classmethod
    def format_error_chunk(
        cls, message_id: str, model: str, created: int, error_type: str, error_message: str
    ) -> str:
        """Final chunk reporting a failure that happened mid-stream.

        Clients that only render ``delta.content`` still see the message; the
        ``error`` object carries it in machine-readable form.
        """
        return cls.format_data_event(
            {
                "id": message_id,
                "object": "chat.completion.chunk",
                "created": created,
                "model": model,
                "choices": [
                    {
                        "index": 0,
                        "delta": {"content": f"Error: {error_message}"},
                        "finish_reason": "stop",
                    }
                ],
                "error": {"type": error_type, "message": error_message},
            }
        )

    @staticmethod
    def format_done() -> str:
        return SSE_DONE
