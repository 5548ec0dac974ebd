"""Event folding and SSE delivery."""

import asyncio
import json

import pytest

from fin_query import QueryError, encode_sse, fold_events, stream_to_sse
from fin_query.streaming import SSE_HEADERS, UNEXPECTED_ERROR_MESSAGE
from fin_query.types import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    QueryUsage,
    Source,
    SourcesEvent,
    ThinkingEvent,
    ToolResultEvent,
    ToolStartEvent,
)


class RecordingChannel:
    def __init__(self):
        self.headers = {}
        self.flushed = False
        self.writes = []
        self.ended = False

    def set_header(self, name, value):
        self.headers[name] = value

    async def flush_headers(self):
        self.flushed = True

    async def write(self, data):
        assert not self.ended
        self.writes.append(data)

    async def end(self):
        self.ended = True

    def payloads(self):
        return [json.loads(w.removeprefix("data: ")) for w in self.writes]


async def produce(*events, fail=None):
    for event in events:
        yield event
    if fail is not None:
        raise fail


def deliver(events):
    channel = RecordingChannel()
    asyncio.run(stream_to_sse(events, channel))
    return channel


USAGE = QueryUsage(input_tokens=120, output_tokens=30, tool_calls=1)


class TestFoldEvents:
    def test_collects_answer_tools_sources_usage(self):
        events = produce(
            ThinkingEvent("Analyzing your question..."),
            ToolStartEvent("get_account_balances", "Balances"),
            ToolResultEvent("get_account_balances", "2 accounts"),
            ContentEvent("Net worth "),
            ContentEvent("is 2100.00."),
            SourcesEvent([Source("accounts", "All account balances")]),
            DoneEvent(USAGE),
        )

        result = asyncio.run(fold_events(events))

        assert result.answer == "Net worth is 2100.00."
        assert result.to_dict() == {
            "answer": "Net worth is 2100.00.",
            "toolsUsed": [{"name": "get_account_balances", "summary": "2 accounts"}],
            "sources": [{"type": "accounts", "description": "All account balances"}],
            "usage": {"inputTokens": 120, "outputTokens": 30, "toolCalls": 1},
        }

    def test_error_event_raises(self):
        events = produce(ThinkingEvent("..."), ErrorEvent("No AI provider available"))

        with pytest.raises(QueryError, match="No AI provider available"):
            asyncio.run(fold_events(events))

    def test_missing_done_raises(self):
        events = produce(ThinkingEvent("..."), ContentEvent("partial"))

        with pytest.raises(QueryError) as excinfo:
            asyncio.run(fold_events(events))
        assert str(excinfo.value) == UNEXPECTED_ERROR_MESSAGE

    def test_error_drains_the_stream_first(self):
        cleaned_up = []

        async def producer():
            try:
                yield ErrorEvent("No AI provider available")
            finally:
                cleaned_up.append(True)

        with pytest.raises(QueryError, match="No AI provider available"):
            asyncio.run(fold_events(producer()))
        assert cleaned_up == [True]


class TestEncodeSse:
    def test_compact_data_line(self):
        assert encode_sse(ContentEvent("Hi")) == 'data: {"type":"content","text":"Hi"}\n\n'

    def test_source_date_range_is_camel_case(self):
        frame = encode_sse(SourcesEvent([Source("spending", "By category", "2026-09-01 to 2026-09-30")]))

        assert json.loads(frame[len("data: "):]) == {
            "type": "sources",
            "sources": [
                {"type": "spending", "description": "By category", "dateRange": "2026-09-01 to 2026-09-30"}
            ],
        }

    def test_accepts_plain_mapping(self):
        assert encode_sse({"type": "error", "message": "x"}) == 'data: {"type":"error","message":"x"}\n\n'


class TestStreamToSse:
    def test_headers_then_events_in_order(self):
        channel = deliver(produce(ThinkingEvent("..."), ContentEvent("Answer"), DoneEvent(USAGE)))

        assert channel.headers == dict(SSE_HEADERS)
        assert channel.headers["Content-Type"] == "text/event-stream"
        assert channel.flushed
        assert [p["type"] for p in channel.payloads()] == ["thinking", "content", "done"]
        assert channel.payloads()[-1]["usage"]["toolCalls"] == 1
        assert channel.ended

    def test_producer_exception_becomes_single_error(self):
        channel = deliver(produce(ThinkingEvent("..."), fail=RuntimeError("db password in message")))

        payloads = channel.payloads()
        assert [p["type"] for p in payloads] == ["thinking", "error"]
        assert payloads[-1]["message"] == UNEXPECTED_ERROR_MESSAGE
        assert "password" not in "".join(channel.writes)
        assert channel.ended

    def test_exception_after_terminal_adds_nothing(self):
        channel = deliver(produce(ContentEvent("a"), DoneEvent(USAGE), fail=RuntimeError("late")))

        assert [p["type"] for p in channel.payloads()] == ["content", "done"]
        assert channel.ended

    def test_missing_terminal_is_filled_in(self):
        channel = deliver(produce(ThinkingEvent("..."), ContentEvent("partial")))

        assert [p["type"] for p in channel.payloads()] == ["thinking", "content", "error"]

    def test_events_after_terminal_are_dropped(self):
        channel = deliver(produce(ErrorEvent("first"), ContentEvent("late"), DoneEvent(USAGE)))

        assert channel.payloads() == [{"type": "error", "message": "first"}]
