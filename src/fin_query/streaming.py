"""
Consumers for the agent's event stream.

``fold_events`` buffers a run into one ``QueryResult``; ``stream_to_sse``
forwards each event to a server-sent-events channel as it is produced.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Final, Mapping, Optional, Protocol, Union

from fin_query._exceptions import QueryError
from fin_query.types import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    QueryUsage,
    Source,
    SourcesEvent,
    StreamEvent,
    ToolResultEvent,
)

__all__ = [
    "QueryResult",
    "ToolUse",
    "SSEChannel",
    "SSE_HEADERS",
    "UNEXPECTED_ERROR_MESSAGE",
    "fold_events",
    "encode_sse",
    "stream_to_sse",
]

logger = logging.getLogger(__name__)

SSE_HEADERS: Final[Mapping[str, str]] = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # stop nginx from buffering the stream
    "X-Accel-Buffering": "no",
}

UNEXPECTED_ERROR_MESSAGE: Final = "An unexpected error occurred while processing your query."


@dataclass(slots=True)
class ToolUse:
    name: str
    summary: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "summary": self.summary}


@dataclass(slots=True)
class QueryResult:
    answer: str
    tools_used: list[ToolUse] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)
    usage: QueryUsage = field(default_factory=QueryUsage)

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "toolsUsed": [t.to_dict() for t in self.tools_used],
            "sources": [s.to_dict() for s in self.sources],
            "usage": self.usage.to_dict(),
        }


async def fold_events(events: AsyncIterable[StreamEvent]) -> QueryResult:
    """
    Drain *events* into a single result.

    The whole stream is consumed before raising, so the producer's cleanup
    runs. An error event, or a stream that ends without a ``done`` event,
    raises ``QueryError``.
    """
    parts: list[str] = []
    result = QueryResult(answer="")
    error: Optional[str] = None
    done = False

    async for event in events:
        if isinstance(event, ContentEvent):
            parts.append(event.text)
        elif isinstance(event, ToolResultEvent):
            result.tools_used.append(ToolUse(event.name, event.summary))
        elif isinstance(event, SourcesEvent):
            result.sources.extend(event.sources)
        elif isinstance(event, DoneEvent):
            result.usage = event.usage
            done = True
        elif isinstance(event, ErrorEvent) and error is None:
            error = event.message

    if error is not None:
        raise QueryError(error)
    if not done:
        logger.error("Query stream ended without a terminal event")
        raise QueryError(UNEXPECTED_ERROR_MESSAGE)

    result.answer = "".join(parts)
    return result


def encode_sse(event: Union[StreamEvent, Mapping[str, Any]]) -> str:
    payload = event.to_dict() if hasattr(event, "to_dict") else dict(event)
    return f"data: {json.dumps(payload, separators=(',', ':'), default=str)}\n\n"


class SSEChannel(Protocol):
    """The slice of an HTTP response that ``stream_to_sse`` writes to."""

    def set_header(self, name: str, value: str) -> None: ...

    async def flush_headers(self) -> None: ...

    async def write(self, data: str) -> None: ...

    async def end(self) -> None: ...


async def stream_to_sse(
    events: AsyncIterable[StreamEvent],
    channel: SSEChannel,
    log: Optional[logging.Logger] = None,
) -> None:
    """
    Forward *events* to *channel* in order, then close it.

    The channel always receives a terminal event before it is ended: if the
    producer raises, or stops without a ``done``/``error``, one generic error
    event is written in its place. Exception details only go to the log.
    """
    log = log or logger
    for name, value in SSE_HEADERS.items():
        channel.set_header(name, value)
    await channel.flush_headers()

    terminated = False
    try:
        async for event in events:
            if terminated:
                log.warning("Dropping %s event produced after the terminal event", event.type)
                continue
            await channel.write(encode_sse(event))
            terminated = event.terminal
        if not terminated:
            log.error("Query stream ended without a terminal event")
            await channel.write(encode_sse(ErrorEvent(UNEXPECTED_ERROR_MESSAGE)))
    except Exception:
        log.exception("Query stream failed")
        if not terminated:
            await channel.write(encode_sse(ErrorEvent(UNEXPECTED_ERROR_MESSAGE)))
    finally:
        await channel.end()
