from __future__ import annotations

import logging
from typing import AsyncIterator, Final, Optional, Self, Sequence

import httpx
from anthropic import AsyncAnthropic

from fin_query.adapters.anthropic import AnthropicRequestAdapter
from fin_query.types import (
    CompletionRequest,
    CompletionResponse,
    StreamChunk,
    ToolCompletionResponse,
    ToolDefinition,
)

from .base import BaseAsyncLLM

DEFAULT_MODEL: Final = "claude-sonnet-4-20250514"
DEFAULT_TIMEOUT: Final = 60.0
AVAILABILITY_TIMEOUT: Final = 5.0


class AnthropicLLM(BaseAsyncLLM):
    """
    Anthropic Messages API client with native tool use and streaming.

    Use ``AnthropicLLM.from_client`` when you already have an ``AsyncAnthropic`` instance.
    """

    supports_streaming = True
    supports_tool_use = True

    def __init__(
        self,
        model: Optional[str] = None,
        *,
        api_key: Optional[str],
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = 2,
        logger: Optional[logging.Logger] = None,
        name: str = "anthropic",
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(model=model or DEFAULT_MODEL, logger=logger, name=name, base_url=base_url)
        self._client = AsyncAnthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            http_client=http_client,
        )
        self._adapter = AnthropicRequestAdapter()

    # Alternate constructor
    @classmethod
    def from_client(
        cls,
        client: AsyncAnthropic,
        model: Optional[str] = None,
        *,
        logger: Optional[logging.Logger] = None,
        name: str = "anthropic",
    ) -> Self:
        """
        Build an ``AnthropicLLM`` around an already-configured ``AsyncAnthropic`` client.
        """
        if not isinstance(client, AsyncAnthropic):
            raise TypeError(
                f"AnthropicLLM.from_client expects AsyncAnthropic; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        BaseAsyncLLM.__init__(self, model=model or DEFAULT_MODEL, logger=logger, name=name)
        self._client = client
        self._adapter = AnthropicRequestAdapter()
        return self

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        args = {
            **self._adapter.build_params(
                model=self.model,
                system_prompt=request.system_prompt,
                max_tokens=request.max_tokens or 1024,
                temperature=request.temperature,
            ),
            "messages": self._adapter.build_simple_messages(request.messages),
        }
        self._log(f"Sending completion to {self.model}", logging.DEBUG)
        try:
            raw = await self._client.messages.create(**args)
        except Exception as exc:
            raise self._provider_error(exc) from exc
        return self._adapter.from_provider(raw, self.name)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        args = {
            **self._adapter.build_params(
                model=self.model,
                system_prompt=request.system_prompt,
                max_tokens=request.max_tokens or 1024,
                temperature=request.temperature,
            ),
            "messages": self._adapter.build_simple_messages(request.messages),
        }
        self._log(f"Streaming completion from {self.model}", logging.DEBUG)
        try:
            events = await self._client.messages.create(stream=True, **args)
            async for event in events:
                text = self._adapter.stream_text(event)
                if text:
                    yield StreamChunk(content=text, done=False)
        except Exception as exc:
            raise self._provider_error(exc) from exc
        yield StreamChunk(content="", done=True)

    async def complete_with_tools(
        self,
        request: CompletionRequest,
        tools: Sequence[ToolDefinition],
    ) -> ToolCompletionResponse:
        args = {
            **self._adapter.build_params(
                model=self.model,
                system_prompt=request.system_prompt,
                max_tokens=request.max_tokens or 4096,
                temperature=request.temperature,
            ),
            "messages": self._adapter.build_messages(request.messages),
            "tools": self._adapter.build_tools(tools),
        }
        self._log(
            f"Sending tool completion to {self.model} ({len(request.messages)} messages)",
            logging.DEBUG,
        )
        try:
            raw = await self._client.messages.create(**args)
        except Exception as exc:
            raise self._provider_error(exc) from exc
        return self._adapter.tool_response_from_provider(raw, self.name)

    async def is_available(self) -> bool:
        try:
            await self._client.with_options(
                timeout=AVAILABILITY_TIMEOUT, max_retries=0
            ).models.list(limit=1)
        except Exception as exc:
            self._log(f"Availability check failed: {exc}", logging.WARNING)
            return False
        return True
