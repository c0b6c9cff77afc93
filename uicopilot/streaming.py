"""Streaming chat protocol.

Defines the events a chat request produces, the order they may occur in, and
their serialisation as ``data: <json>\\n\\n`` frames.

Per request: Opened -> Streaming (tokens) -> [SourceDocs] -> Done -> Closed.
An Error replaces any remaining tokens and is followed only by Done.
"""
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional, Sequence, Tuple

import structlog

from uicopilot.rag.documents import Document

logger = structlog.get_logger()

DONE_SENTINEL = "[DONE]"


class StreamEventType(str, Enum):
    """Events produced by the chat orchestrator."""

    TOKEN = "token"
    SOURCE_DOCS = "source_docs"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True)
class StreamEvent:
    """One event of a chat stream."""

    type: StreamEventType
    text: Optional[str] = None
    documents: Tuple[Document, ...] = ()
    reason: Optional[str] = None

    @classmethod
    def token(cls, text: str) -> "StreamEvent":
        return cls(StreamEventType.TOKEN, text=text)

    @classmethod
    def source_docs(cls, documents: Sequence[Document]) -> "StreamEvent":
        return cls(StreamEventType.SOURCE_DOCS, documents=tuple(documents))

    @classmethod
    def error(cls, reason: str) -> "StreamEvent":
        return cls(StreamEventType.ERROR, reason=reason)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(StreamEventType.DONE)

    def to_payload(self) -> Any:
        """JSON payload of the frame for this event."""
        if self.type is StreamEventType.TOKEN:
            return {"data": self.text}
        if self.type is StreamEventType.SOURCE_DOCS:
            return {"sourceDocs": [doc.to_dict() for doc in self.documents]}
        if self.type is StreamEventType.ERROR:
            return {"error": self.reason}
        return DONE_SENTINEL


class StreamState(str, Enum):
    OPENED = "opened"
    STREAMING = "streaming"
    SOURCES_SENT = "sources_sent"
    ERRORED = "errored"
    DONE = "done"
    CLOSED = "closed"


class StreamProtocolError(RuntimeError):
    """Raised when an event arrives out of order."""


# state -> event type -> next state
_TRANSITIONS: Dict[StreamState, Dict[StreamEventType, StreamState]] = {
    StreamState.OPENED: {
        StreamEventType.TOKEN: StreamState.STREAMING,
        StreamEventType.SOURCE_DOCS: StreamState.SOURCES_SENT,
        StreamEventType.ERROR: StreamState.ERRORED,
        StreamEventType.DONE: StreamState.DONE,
    },
    StreamState.STREAMING: {
        StreamEventType.TOKEN: StreamState.STREAMING,
        StreamEventType.SOURCE_DOCS: StreamState.SOURCES_SENT,
        StreamEventType.ERROR: StreamState.ERRORED,
        StreamEventType.DONE: StreamState.DONE,
    },
    StreamState.SOURCES_SENT: {
        StreamEventType.DONE: StreamState.DONE,
    },
    StreamState.ERRORED: {
        StreamEventType.DONE: StreamState.DONE,
    },
    StreamState.DONE: {},
    StreamState.CLOSED: {},
}


class StreamProtocol:
    """Per-request state machine enforcing the event order."""

    def __init__(self):
        self.state = StreamState.OPENED

    @property
    def finished(self) -> bool:
        return self.state in (StreamState.DONE, StreamState.CLOSED)

    def advance(self, event: StreamEvent) -> StreamState:
        """Apply ``event``.

        Raises:
            StreamProtocolError: If the event is not valid in the current state
        """
        next_state = _TRANSITIONS[self.state].get(event.type)
        if next_state is None:
            raise StreamProtocolError(
                f"Event {event.type.value} not allowed in state {self.state.value}"
            )
        self.state = next_state
        return next_state

    def close(self) -> None:
        """Move to Closed; only valid once Done has been sent."""
        if self.state is not StreamState.DONE:
            raise StreamProtocolError(f"Cannot close stream in state {self.state.value}")
        self.state = StreamState.CLOSED


def encode_frame(payload: Any) -> str:
    """Serialise one frame; the done sentinel is sent bare."""
    if payload == DONE_SENTINEL:
        return f"data: {DONE_SENTINEL}\n\n"
    return f"data: {json.dumps(payload)}\n\n"


def opened_frame() -> str:
    """First frame of every stream, telling the client the request was accepted."""
    return encode_frame({"data": ""})


async def sse_frames(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    """Map chat events to wire frames, always ending with exactly one done frame.

    If the event source raises, ends without Done or sends an event out of
    order, the stream is cut there and an error frame (when still allowed)
    and the done frame are emitted on its behalf.
    """
    protocol = StreamProtocol()

    try:
        yield opened_frame()

        async for event in events:
            protocol.advance(event)
            yield encode_frame(event.to_payload())
            if protocol.finished:
                break
    except StreamProtocolError as e:
        logger.error("chat_stream_out_of_order", error=str(e), state=protocol.state.value)
    except Exception as e:
        logger.error("chat_stream_failed", error=str(e), error_type=type(e).__name__)
        error = StreamEvent.error("An error occurred while generating the answer.")
        if error.type in _TRANSITIONS[protocol.state]:
            protocol.advance(error)
            yield encode_frame(error.to_payload())
    finally:
        if hasattr(events, "aclose"):
            await events.aclose()

    if not protocol.finished:
        protocol.advance(StreamEvent.done())
        yield encode_frame(DONE_SENTINEL)

    protocol.close()
