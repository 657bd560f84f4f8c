"""Re-frames the provider's SSE stream into a normalized OpenAI chunk stream.

Upstream events are parsed with ``httpx_sse``. The relay always terminates
its output with ``data: [DONE]``. An upstream ``[DONE]`` ends it cleanly; any
other end of the upstream (EOF, read error) produces exactly one error chunk
before the terminator.
"""

import time
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field

import httpx
import orjson
from httpx_sse import EventSource
from structlog import get_logger

from qwen_code_proxy.adapters.openai.models import normalize_chunk
from qwen_code_proxy.adapters.openai.streaming import OpenAISSEFormatter
from qwen_code_proxy.utils.id_generator import generate_completion_id


logger = get_logger(__name__)

DONE_PAYLOAD = "[DONE]"
STREAM_ERROR_TYPE = "stream_error"
UNTERMINATED_STREAM_MESSAGE = "Upstream stream ended without [DONE]"


@dataclass
class StreamSession:
    """Per-relay state: the shared completion id and whether [DONE] was sent."""

    model: str
    completion_id: str = field(default_factory=generate_completion_id)
    done: bool = False
    chunks_emitted: int = 0


class StreamRelay:
    """Relays one upstream event stream for a request made with ``model``."""

    def __init__(self, model: str, formatter: OpenAISSEFormatter | None = None) -> None:
        self.model = model
        self.formatter = formatter or OpenAISSEFormatter()

    def process_data(self, session: StreamSession, data: str) -> str | None:
        """Turn one upstream event's data into an output event, or None to skip it."""
        payload = data.strip()
        if not payload:
            return None
        if payload == DONE_PAYLOAD:
            session.done = True
            return self.formatter.format_done()

        try:
            chunk = orjson.loads(payload)
        except orjson.JSONDecodeError:
            logger.debug("stream_chunk_unparseable", completion_id=session.completion_id)
            return None
        if not isinstance(chunk, dict):
            return None

        session.chunks_emitted += 1
        return self.formatter.format_data_event(
            normalize_chunk(chunk, self.model, session.completion_id)
        )

    def error_events(self, session: StreamSession, message: str) -> list[str]:
        session.done = True
        return [
            self.formatter.format_error_chunk(
                session.completion_id,
                self.model,
                int(time.time()),
                STREAM_ERROR_TYPE,
                message,
            ),
            self.formatter.format_done(),
        ]

    async def relay(self, response: httpx.Response) -> AsyncIterator[bytes]:
        """Yield normalized SSE events read from an open streaming ``response``.

        Never raises from upstream failures; they become an error chunk.
        Closing the returned generator stops reading ``response``.
        """
        session = StreamSession(model=self.model)
        try:
            async with aclosing(EventSource(response).aiter_sse()) as events:
                async for sse in events:
                    event = self.process_data(session, sse.data)
                    if event is not None:
                        yield event.encode()
                    if session.done:
                        return

            logger.warning(
                "stream_ended_without_done",
                completion_id=session.completion_id,
                chunks=session.chunks_emitted,
            )
            message = UNTERMINATED_STREAM_MESSAGE
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "stream_read_failed",
                completion_id=session.completion_id,
                chunks=session.chunks_emitted,
                error=repr(e),
            )
            message = str(e) or type(e).__name__

        for event in self.error_events(session, message):
            yield event.encode()
