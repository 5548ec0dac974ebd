"""QueryAgent: the bounded tool loop and its event stream."""

import asyncio
import json

import pytest

from fin_query import InMemoryUsageLog, NoProviderError, QueryAgent, QueryError, ProviderError
from fin_query.agent import (
    CONTEXT_FAILED_MESSAGE,
    EXHAUSTED_MESSAGE,
    MAX_ITERATIONS,
    NO_PROVIDER_MESSAGE,
    PROVIDER_FAILED_MESSAGE,
)
from fin_query.tools import GroupTotal, ToolExecutor
from fin_query.types import (
    AssistantMessage,
    StopReason,
    TokenUsage,
    ToolCall,
    ToolCompletionResponse,
    ToolExecutionResult,
    ToolMessage,
    Source,
    validate_conversation,
)


def text_reply(content, usage=(10, 5)):
    return ToolCompletionResponse(
        content, [], TokenUsage(*usage), "model-x", "fake", StopReason.END_TURN
    )


def tool_reply(*calls, usage=(100, 20)):
    return ToolCompletionResponse(
        "", list(calls), TokenUsage(*usage), "model-x", "fake", StopReason.TOOL_USE
    )


class ScriptedProvider:
    name = "fake"
    model = "model-x"
    supports_tool_use = True

    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []
        self.closed = 0

    async def complete_with_tools(self, request, tools):
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def aclose(self):
        self.closed += 1


class FakeSelector:
    def __init__(self, provider=None, error=None):
        self.provider = provider
        self.error = error

    async def get_tool_use_provider(self, user_id):
        if self.error is not None:
            raise self.error
        return self.provider


class FakeContext:
    def __init__(self, fail=False):
        self.fail = fail

    async def build_query_context(self, user_id):
        if self.fail:
            raise RuntimeError("db offline")
        return "SYSTEM PROMPT"


class EchoExecutor:
    """Returns a canned result per tool; unknown names get the error shape."""

    def __init__(self):
        self.calls = []

    async def execute(self, user_id, name, input):
        self.calls.append((name, input))
        if name == "mystery_tool":
            return ToolExecutionResult({"error": f"Unknown tool: {name}"}, f"Unknown tool: {name}")
        return ToolExecutionResult(
            {"total": 42}, f"{name} ok", [Source("spending", f"{name} source", "2026-09")]
        )


class SpendingQueries:
    async def list_accounts(self, user_id):
        return []

    async def category_tree(self, user_id):
        return []

    async def grouped_totals(self, user_id, start_date, end_date, **kwargs):
        return [GroupTotal("Groceries", 312.5, 9), GroupTotal("Dining", 87.5, 3)]


def make_agent(provider=None, *, selector=None, context=None, executor=None, usage=None):
    return QueryAgent(
        selector or FakeSelector(provider),
        context or FakeContext(),
        executor or EchoExecutor(),
        usage if usage is not None else InMemoryUsageLog(),
    )


def collect(agent, query="How much did I spend on groceries last month?"):
    async def go():
        return [event async for event in agent.run("user-1", query)]

    return asyncio.run(go())


def types_of(events):
    return [e.type for e in events]


def test_groceries_question_end_to_end():
    provider = ScriptedProvider([
        tool_reply(
            ToolCall(
                "call_1",
                "get_spending_by_category",
                {"startDate": "2026-09-01", "endDate": "2026-09-30"},
            )
        ),
        text_reply("You spent 312.50 on groceries last month."),
    ])
    usage = InMemoryUsageLog()
    agent = make_agent(provider, executor=ToolExecutor(SpendingQueries()), usage=usage)

    events = collect(agent)

    assert types_of(events) == [
        "thinking",
        "tool_start",
        "tool_result",
        "content",
        "sources",
        "done",
    ]
    assert events[1].name == "get_spending_by_category"
    assert events[2].summary == (
        "Total spending: 400.00 across 2 categories from 2026-09-01 to 2026-09-30"
    )
    assert events[3].text == "You spent 312.50 on groceries last month."
    assert events[4].sources[0].type == "spending"
    assert events[5].usage.to_dict() == {"inputTokens": 110, "outputTokens": 25, "toolCalls": 1}

    (record,) = usage.records
    assert record.feature == "query"
    assert record.provider == "fake"
    assert record.input_tokens == 110
    assert record.error is None

    final = provider.requests[-1]
    assert final.system_prompt == "SYSTEM PROMPT"
    assert final.max_tokens == 4096
    assert final.temperature == 0.1
    assert isinstance(final.messages[1], AssistantMessage)
    tool_message = final.messages[2]
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.tool_call_id == "call_1"
    assert json.loads(tool_message.content)["totalSpending"] == 400.0


def test_direct_answer_has_no_sources_event():
    agent = make_agent(ScriptedProvider([text_reply("Hello!")]))

    events = collect(agent, "hi")

    assert types_of(events) == ["thinking", "content", "done"]
    assert events[-1].usage.tool_calls == 0


def test_each_round_sees_a_snapshot():
    provider = ScriptedProvider([
        tool_reply(ToolCall("a", "get_account_balances", {})),
        tool_reply(ToolCall("b", "get_net_worth_history", {})),
        text_reply("done"),
    ])

    collect(make_agent(provider))

    assert [len(r.messages) for r in provider.requests] == [1, 3, 5]
    validate_conversation(provider.requests[-1].messages)


def test_parallel_calls_in_one_round():
    provider = ScriptedProvider([
        tool_reply(
            ToolCall("a", "get_account_balances", {}),
            ToolCall("b", "get_income_summary", {"startDate": "2026-01-01", "endDate": "2026-09-30"}),
        ),
        text_reply("Summary"),
    ])
    executor = EchoExecutor()

    events = collect(make_agent(provider, executor=executor))

    assert types_of(events) == [
        "thinking",
        "tool_start",
        "tool_result",
        "tool_start",
        "tool_result",
        "content",
        "sources",
        "done",
    ]
    assert [name for name, _ in executor.calls] == ["get_account_balances", "get_income_summary"]
    assert len(events[6].sources) == 2
    assert events[-1].usage.tool_calls == 2
    final_messages = provider.requests[-1].messages
    assert [m.role for m in final_messages] == ["user", "assistant", "tool", "tool"]
    validate_conversation(final_messages)


def test_stops_after_max_iterations():
    provider = ScriptedProvider([tool_reply(ToolCall("x", "get_account_balances", {}), usage=(10, 1))])
    usage = InMemoryUsageLog()

    events = collect(make_agent(provider, usage=usage))

    assert len(provider.requests) == MAX_ITERATIONS
    assert types_of(events)[-3:] == ["content", "sources", "done"]
    assert events[-3].text == EXHAUSTED_MESSAGE
    assert events[-1].usage.to_dict() == {"inputTokens": 50, "outputTokens": 5, "toolCalls": 5}
    assert types_of(events).count("tool_start") == MAX_ITERATIONS
    assert usage.records[0].model == "model-x"


def test_unknown_tool_is_reported_back_to_model():
    provider = ScriptedProvider([
        tool_reply(ToolCall("m1", "mystery_tool", {})),
        text_reply("I could not look that up."),
    ])

    events = collect(make_agent(provider))

    assert events[1].description == "mystery_tool"
    assert events[2].summary == "Unknown tool: mystery_tool"
    assert json.loads(provider.requests[1].messages[2].content) == {
        "error": "Unknown tool: mystery_tool"
    }
    assert events[-1].type == "done"


def test_provider_failure_ends_with_error_and_records_usage():
    provider = ScriptedProvider([ProviderError("Request timed out", provider="fake")])
    usage = InMemoryUsageLog()

    events = collect(make_agent(provider, usage=usage))

    assert types_of(events) == ["thinking", "error"]
    assert events[-1].message == PROVIDER_FAILED_MESSAGE
    (record,) = usage.records
    assert record.error == "Request timed out"
    assert record.model == "model-x"
    assert record.input_tokens == 0


def test_provider_failure_mid_loop_keeps_tool_events():
    provider = ScriptedProvider([
        tool_reply(ToolCall("a", "get_account_balances", {})),
        RuntimeError("connection reset"),
    ])

    events = collect(make_agent(provider))

    assert types_of(events) == ["thinking", "tool_start", "tool_result", "error"]


def test_context_failure():
    events = collect(make_agent(ScriptedProvider([text_reply("x")]), context=FakeContext(fail=True)))

    assert types_of(events) == ["thinking", "error"]
    assert events[-1].message == CONTEXT_FAILED_MESSAGE


def test_no_tool_provider_message_is_surfaced():
    selector = FakeSelector(error=NoProviderError("No AI provider with tool use support configured."))

    events = collect(make_agent(selector=selector))

    assert types_of(events) == ["thinking", "error"]
    assert events[-1].message == "No AI provider with tool use support configured."


def test_unexpected_selection_failure_is_generic():
    events = collect(make_agent(selector=FakeSelector(error=KeyError("secret"))))

    assert events[-1].message == NO_PROVIDER_MESSAGE


def test_usage_recorder_failure_is_ignored():
    class BrokenUsage:
        async def log_usage(self, record):
            raise RuntimeError("db down")

    events = collect(make_agent(ScriptedProvider([text_reply("fine")]), usage=BrokenUsage()))

    assert types_of(events) == ["thinking", "content", "done"]


@pytest.mark.parametrize(
    "replies",
    [
        [text_reply("a")],
        [tool_reply(ToolCall("x", "get_account_balances", {}))],
        [ProviderError("boom")],
    ],
)
def test_exactly_one_terminal_event_and_it_is_last(replies):
    events = collect(make_agent(ScriptedProvider(replies)))

    terminal = [e for e in events if e.terminal]
    assert len(terminal) == 1
    assert events[-1] is terminal[0]


class TestExecute:
    def test_folds_events(self):
        provider = ScriptedProvider([
            tool_reply(ToolCall("a", "get_account_balances", {})),
            text_reply("Your net worth is 2100.00."),
        ])

        result = asyncio.run(make_agent(provider).execute("user-1", "net worth?"))

        assert result.answer == "Your net worth is 2100.00."
        assert [t.name for t in result.tools_used] == ["get_account_balances"]
        assert result.sources[0].description == "get_account_balances source"
        assert result.usage.tool_calls == 1
        assert result.to_dict()["toolsUsed"] == [
            {"name": "get_account_balances", "summary": "get_account_balances ok"}
        ]

    def test_error_raises(self):
        agent = make_agent(ScriptedProvider([ProviderError("boom")]))

        with pytest.raises(QueryError, match="encountered an error"):
            asyncio.run(agent.execute("user-1", "net worth?"))


class TestProviderLifecycle:
    @pytest.mark.parametrize(
        "replies",
        [
            [text_reply("a")],
            [tool_reply(ToolCall("x", "get_account_balances", {}))],
            [ProviderError("boom")],
        ],
    )
    def test_closed_once_after_run(self, replies):
        provider = ScriptedProvider(replies)

        collect(make_agent(provider))

        assert provider.closed == 1

    def test_closed_when_execute_raises(self):
        provider = ScriptedProvider([ProviderError("boom")])

        with pytest.raises(QueryError):
            asyncio.run(make_agent(provider).execute("user-1", "net worth?"))
        assert provider.closed == 1

    def test_closed_when_consumer_stops_early(self):
        provider = ScriptedProvider([tool_reply(ToolCall("x", "get_account_balances", {}))])
        agent = make_agent(provider)

        async def go():
            events = agent.run("user-1", "net worth?")
            async for event in events:
                if event.type == "tool_start":
                    break
            await events.aclose()

        asyncio.run(go())

        assert provider.closed == 1
