"""Tests for re-framing upstream SSE into normalized OpenAI chunks."""

from collections.abc import AsyncIterator

import httpx
import orjson
import pytest

from qwen_code_proxy.services.stream_relay import StreamRelay


DONE = "data: [DONE]\n\n"
TWO_CHUNKS_THEN_DONE = (
    b'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n'
    b'data: {"choices":[{"delta":{"content":"lo"}}]}\n\n'
    b"data: [DONE]\n\n"
)


class ChunkedBody(httpx.AsyncByteStream):
    """Response body delivered in the given reads, optionally failing after the last."""

    def __init__(self, parts: tuple[bytes, ...], error: Exception | None = None) -> None:
        self.parts = parts
        self.error = error

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for part in self.parts:
            yield part
        if self.error is not None:
            raise self.error


def source(
    *parts: bytes, error: Exception | None = None, content_type: str = "text/event-stream"
) -> httpx.Response:
    return httpx.Response(
        200, headers={"content-type": content_type}, stream=ChunkedBody(parts, error)
    )


async def collect(stream: AsyncIterator[bytes]) -> list[str]:
    return [event.decode() async for event in stream]


def payload(event: str) -> dict:
    assert event.startswith("data: ")
    assert event.endswith("\n\n")
    return orjson.loads(event[len("data: ") :])


def content(event: str) -> str:
    return payload(event)["choices"][0]["delta"].get("content", "")


@pytest.fixture
def relay() -> StreamRelay:
    return StreamRelay("qwen3-coder-plus")


@pytest.mark.unit
async def test_events_split_across_reads_are_reassembled(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(
            source(
                b'data: {"choices":[{"delta":{"content":"Hel',
                b'lo"}}]}\n',
                b'\ndata: {"choices":[{"delta":{"content":" world"}}]}\n\nda',
                b"ta: [DONE]\n\n",
            )
        )
    )

    assert [content(event) for event in events[:-1]] == ["Hello", " world"]
    assert events[-1] == DONE


@pytest.mark.unit
@pytest.mark.parametrize("split", range(1, len(TWO_CHUNKS_THEN_DONE)))
async def test_output_does_not_depend_on_read_boundaries(relay: StreamRelay, split: int) -> None:
    events = await collect(
        relay.relay(source(TWO_CHUNKS_THEN_DONE[:split], TWO_CHUNKS_THEN_DONE[split:]))
    )

    assert len(events) == 3
    assert [content(event) for event in events[:2]] == ["Hel", "lo"]
    assert all(payload(event)["object"] == "chat.completion.chunk" for event in events[:2])
    assert events[2] == DONE


@pytest.mark.unit
async def test_chunks_get_a_shared_envelope(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(
            source(
                b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n',
                b'data: {"choices":[{"delta":{"content":"hi"}}],"usage":{"total_tokens":3}}\n\n',
                b"data: [DONE]\n\n",
            )
        )
    )

    first, second = payload(events[0]), payload(events[1])
    assert first["id"].startswith("chatcmpl-")
    assert first["id"] == second["id"]
    assert first["object"] == "chat.completion.chunk"
    assert first["model"] == "qwen3-coder-plus"
    assert isinstance(first["created"], int)
    assert "usage" not in first
    assert second["usage"] == {"total_tokens": 3}


@pytest.mark.unit
async def test_upstream_id_and_model_are_kept(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(
            source(
                b'data: {"id":"up-1","model":"qwen3-coder-plus-2025","created":17,"choices":[]}\n\n',
                b"data: [DONE]\n\n",
            )
        )
    )

    chunk = payload(events[0])
    assert (chunk["id"], chunk["model"], chunk["created"]) == ("up-1", "qwen3-coder-plus-2025", 17)


@pytest.mark.unit
async def test_non_data_lines_and_bad_json_are_skipped(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(
            source(
                b": keep-alive\n\n",
                b"event: message\n",
                b"data: {not json}\n\n",
                b"data: [1, 2]\n\n",
                b'data: {"choices":[{"delta":{"content":"ok"}}]}\n\n',
                b"data: [DONE]\n\n",
            )
        )
    )

    assert len(events) == 2
    assert content(events[0]) == "ok"
    assert events[1] == DONE


@pytest.mark.unit
async def test_crlf_line_endings(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(
            source(b'data: {"choices":[{"delta":{"content":"x"}}]}\r\n\r\ndata: [DONE]\r\n\r\n')
        )
    )

    assert content(events[0]) == "x"
    assert events[1] == DONE


@pytest.mark.unit
async def test_multibyte_character_split_between_reads(relay: StreamRelay) -> None:
    encoded = 'data: {"choices":[{"delta":{"content":"café"}}]}\n\ndata: [DONE]\n\n'.encode()
    split = encoded.index(b"\xc3") + 1

    events = await collect(relay.relay(source(encoded[:split], encoded[split:])))

    assert content(events[0]) == "café"


@pytest.mark.unit
async def test_event_cut_off_mid_line_gets_error_chunk(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(
            source(
                b'data: {"choices":[{"delta":{"content":"a"}}]}\n\n',
                b'data: {"choices":[{"del',
            )
        )
    )

    assert len(events) == 3
    assert content(events[0]) == "a"
    assert payload(events[1])["error"]["message"] == "Upstream stream ended without [DONE]"
    assert events[2] == DONE


@pytest.mark.unit
async def test_nothing_after_done_is_relayed(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(
            source(
                b"data: [DONE]\n\n",
                b'data: {"choices":[{"delta":{"content":"late"}}]}\n\n',
            )
        )
    )

    assert events == [DONE]


@pytest.mark.unit
async def test_stream_ending_without_done_gets_one_error_chunk(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(source(b'data: {"choices":[{"delta":{"content":"partial"}}]}\n\n'))
    )

    assert len(events) == 3
    assert content(events[0]) == "partial"
    error_chunk = payload(events[1])
    assert error_chunk["error"] == {
        "type": "stream_error",
        "message": "Upstream stream ended without [DONE]",
    }
    assert error_chunk["choices"][0]["finish_reason"] == "stop"
    assert error_chunk["id"] == payload(events[0])["id"]
    assert events[2] == DONE


@pytest.mark.unit
async def test_empty_stream_gets_error_chunk(relay: StreamRelay) -> None:
    events = await collect(relay.relay(source()))

    assert len(events) == 2
    assert payload(events[0])["error"]["type"] == "stream_error"
    assert events[1] == DONE


@pytest.mark.unit
async def test_read_error_mid_stream_becomes_error_chunk(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(
            source(
                b'data: {"choices":[{"delta":{"content":"a"}}]}\n\n',
                error=httpx.ReadError("connection reset"),
            )
        )
    )

    assert len(events) == 3
    assert payload(events[1])["error"]["message"] == "connection reset"
    assert content(events[1]) == "Error: connection reset"
    assert events[2] == DONE


@pytest.mark.unit
async def test_non_event_stream_response_gets_error_chunk(relay: StreamRelay) -> None:
    events = await collect(
        relay.relay(source(b'{"error": "oops"}', content_type="application/json"))
    )

    assert len(events) == 2
    assert payload(events[0])["error"]["type"] == "stream_error"
    assert events[1] == DONE
