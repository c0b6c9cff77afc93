"""Tests for the chat stream protocol and its wire frames."""
import json

import pytest

from uicopilot.rag.documents import Document
from uicopilot.streaming import (
    StreamEvent,
    StreamProtocol,
    StreamProtocolError,
    StreamState,
    encode_frame,
    sse_frames,
)

DOC = Document(id="d1", content="UButton docs", metadata={"source": "button.md"})


async def _events(*events, raise_after=None):
    for event in events:
        yield event
    if raise_after is not None:
        raise raise_after


async def _collect(events):
    return [frame async for frame in sse_frames(events)]


def _payloads(frames):
    payloads = []
    for frame in frames:
        assert frame.startswith("data: ") and frame.endswith("\n\n")
        body = frame[len("data: "):-2]
        payloads.append(body if body == "[DONE]" else json.loads(body))
    return payloads


def test_encode_frame():
    assert encode_frame({"data": "Hi"}) == 'data: {"data": "Hi"}\n\n'
    assert encode_frame("[DONE]") == "data: [DONE]\n\n"


def test_payload_shapes():
    assert StreamEvent.token("Hi").to_payload() == {"data": "Hi"}
    assert StreamEvent.error("boom").to_payload() == {"error": "boom"}
    assert StreamEvent.done().to_payload() == "[DONE]"
    assert StreamEvent.source_docs([DOC]).to_payload() == {
        "sourceDocs": [
            {"id": "d1", "pageContent": "UButton docs", "metadata": {"source": "button.md"}}
        ]
    }


async def test_successful_stream_frames():
    frames = await _collect(
        _events(
            StreamEvent.token("X"),
            StreamEvent.token(" is"),
            StreamEvent.source_docs([DOC]),
            StreamEvent.done(),
        )
    )

    payloads = _payloads(frames)
    assert payloads[0] == {"data": ""}
    assert payloads[1:3] == [{"data": "X"}, {"data": " is"}]
    assert payloads[3]["sourceDocs"][0]["pageContent"] == "UButton docs"
    assert payloads[-1] == "[DONE]"
    assert payloads.count("[DONE]") == 1


async def test_missing_done_is_added():
    payloads = _payloads(await _collect(_events(StreamEvent.token("X"))))

    assert payloads[-1] == "[DONE]"
    assert payloads.count("[DONE]") == 1


async def test_source_failure_becomes_error_then_done():
    frames = await _collect(_events(StreamEvent.token("X"), raise_after=RuntimeError("secret detail")))

    payloads = _payloads(frames)
    assert payloads[-2] == {"error": "An error occurred while generating the answer."}
    assert payloads[-1] == "[DONE]"
    assert "secret detail" not in "".join(frames)


async def test_event_out_of_order_still_ends_with_done():
    frames = await _collect(_events(StreamEvent.source_docs([]), StreamEvent.token("late")))

    assert _payloads(frames) == [{"data": ""}, {"sourceDocs": []}, "[DONE]"]
    assert "late" not in "".join(frames)


async def test_events_after_done_are_not_sent():
    payloads = _payloads(
        await _collect(_events(StreamEvent.done(), StreamEvent.token("ignored")))
    )

    assert payloads == [{"data": ""}, "[DONE]"]


def test_protocol_states():
    protocol = StreamProtocol()

    protocol.advance(StreamEvent.token("a"))
    assert protocol.state is StreamState.STREAMING
    protocol.advance(StreamEvent.error("x"))
    assert protocol.state is StreamState.ERRORED

    with pytest.raises(StreamProtocolError):
        protocol.advance(StreamEvent.token("b"))

    protocol.advance(StreamEvent.done())
    protocol.close()
    assert protocol.state is StreamState.CLOSED


def test_close_before_done_rejected():
    with pytest.raises(StreamProtocolError):
        StreamProtocol().close()
