"""The bounded tool-use loop that answers one natural-language question."""

from __future__ import annotations

import json
import logging
import time
from typing import AsyncIterator, Final, Optional, Sequence

from fin_query._exceptions import FinQueryError
from fin_query.context import QueryContextBuilder
from fin_query.providers import ToolUseProvider
from fin_query.selector import ProviderSelector
from fin_query.streaming import QueryResult, fold_events
from fin_query.tools import FINANCIAL_TOOLS, ToolExecutor
from fin_query.types import (
    AssistantMessage,
    CompletionRequest,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    Message,
    QueryUsage,
    Source,
    SourcesEvent,
    StreamEvent,
    ThinkingEvent,
    ToolDefinition,
    ToolMessage,
    ToolResultEvent,
    ToolStartEvent,
    UserMessage,
)
from fin_query.usage import UsageRecord, UsageRecorder, record_usage_safely

__all__ = ["QueryAgent", "MAX_ITERATIONS"]

MAX_ITERATIONS: Final = 5
TOOL_MAX_TOKENS: Final = 4096
TOOL_TEMPERATURE: Final = 0.1
FEATURE: Final = "query"

THINKING_MESSAGE: Final = "Analyzing your question..."
CONTEXT_FAILED_MESSAGE: Final = "Failed to build financial context"
NO_PROVIDER_MESSAGE: Final = "No AI provider available"
PROVIDER_FAILED_MESSAGE: Final = (
    "The AI provider encountered an error processing your query. Please try again."
)
EXHAUSTED_MESSAGE: Final = (
    "I've gathered the data but reached the maximum number of analysis steps. "
    "Here's what I found based on the data collected so far."
)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class QueryAgent:
    """
    Answers a question by letting a tool-capable model call read-only tools.

    ``run`` yields progress events as they happen and always ends with exactly
    one ``DoneEvent`` or ``ErrorEvent``. ``execute`` drives ``run`` to the end
    and folds it into a single ``QueryResult``.

    The provider is chosen once per run: the conversation built up so far is
    in that vendor's tool-call encoding, so a failing round ends the run
    rather than switching provider.
    """

    def __init__(
        self,
        selector: ProviderSelector,
        context_builder: QueryContextBuilder,
        executor: ToolExecutor,
        usage: UsageRecorder,
        tools: Sequence[ToolDefinition] = FINANCIAL_TOOLS,
        max_iterations: int = MAX_ITERATIONS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._selector = selector
        self._context_builder = context_builder
        self._executor = executor
        self._usage = usage
        self._tools = list(tools)
        self._descriptions = {t.name: t.description for t in self._tools}
        self.max_iterations = max_iterations
        self.logger = logger or logging.getLogger(__name__)

    async def execute(self, user_id: str, query: str) -> QueryResult:
        """Run to completion; raises ``QueryError`` if the run ends in an error event."""
        return await fold_events(self.run(user_id, query))

    async def run(self, user_id: str, query: str) -> AsyncIterator[StreamEvent]:
        yield ThinkingEvent(THINKING_MESSAGE)
        start = time.monotonic()

        try:
            system_prompt = await self._context_builder.build_query_context(user_id)
        except Exception as exc:
            self.logger.warning("Failed to build query context for %s: %s", user_id, exc)
            yield ErrorEvent(CONTEXT_FAILED_MESSAGE)
            return

        try:
            provider = await self._selector.get_tool_use_provider(user_id)
        except FinQueryError as exc:
            yield ErrorEvent(str(exc))
            return
        except Exception as exc:
            self.logger.warning("Provider selection failed for %s: %s", user_id, exc)
            yield ErrorEvent(NO_PROVIDER_MESSAGE)
            return

        try:
            async for event in self._converse(user_id, query, provider, system_prompt, start):
                yield event
        finally:
            await provider.aclose()

    async def _converse(
        self,
        user_id: str,
        query: str,
        provider: ToolUseProvider,
        system_prompt: str,
        start: float,
    ) -> AsyncIterator[StreamEvent]:
        messages: list[Message] = [UserMessage(query)]
        sources: list[Source] = []
        usage = QueryUsage()
        model = "unknown"

        for iteration in range(self.max_iterations):
            round_start = time.monotonic()
            request = CompletionRequest(
                system_prompt=system_prompt,
                messages=list(messages),
                max_tokens=TOOL_MAX_TOKENS,
                temperature=TOOL_TEMPERATURE,
            )
            try:
                response = await provider.complete_with_tools(request, self._tools)
            except Exception as exc:
                self.logger.warning(
                    "AI query failed on iteration %d with %s: %s", iteration, provider.name, exc
                )
                await self._record(
                    user_id,
                    provider.name,
                    provider.model,
                    QueryUsage(),
                    _elapsed_ms(round_start),
                    error=str(exc) or exc.__class__.__name__,
                )
                yield ErrorEvent(PROVIDER_FAILED_MESSAGE)
                return

            usage.input_tokens += response.usage.input_tokens
            usage.output_tokens += response.usage.output_tokens
            model = response.model

            if not response.wants_tools:
                async for event in self._finish(
                    user_id, provider.name, model, response.content, sources, usage, start
                ):
                    yield event
                return

            messages.append(AssistantMessage(response.content, list(response.tool_calls)))
            for call in response.tool_calls:
                usage.tool_calls += 1
                yield ToolStartEvent(call.name, self._descriptions.get(call.name, call.name))

                result = await self._executor.execute(user_id, call.name, call.input)
                sources.extend(result.sources)
                yield ToolResultEvent(call.name, result.summary)

                messages.append(
                    ToolMessage(
                        tool_call_id=call.id,
                        name=call.name,
                        content=json.dumps(result.data, default=str),
                    )
                )

        self.logger.info(
            "Query for %s hit the %d-step limit with %s", user_id, self.max_iterations, provider.name
        )
        async for event in self._finish(
            user_id, provider.name, model, EXHAUSTED_MESSAGE, sources, usage, start
        ):
            yield event

    async def _finish(
        self,
        user_id: str,
        provider_name: str,
        model: str,
        answer: str,
        sources: list[Source],
        usage: QueryUsage,
        start: float,
    ) -> AsyncIterator[StreamEvent]:
        yield ContentEvent(answer)
        if sources:
            yield SourcesEvent(list(sources))
        await self._record(user_id, provider_name, model, usage, _elapsed_ms(start))
        yield DoneEvent(usage)

    async def _record(
        self,
        user_id: str,
        provider_name: str,
        model: str,
        usage: QueryUsage,
        duration_ms: int,
        error: Optional[str] = None,
    ) -> None:
        await record_usage_safely(
            self._usage,
            UsageRecord(
                user_id=user_id,
                provider=provider_name,
                model=model,
                feature=FEATURE,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                duration_ms=duration_ms,
                error=error,
            ),
            self.logger,
        )
