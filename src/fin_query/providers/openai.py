from __future__ import annotations

import logging
from typing import AsyncIterator, Final, Optional, Self, Sequence

import httpx
from openai import AsyncOpenAI

from fin_query._exceptions import MALFORMED_RESPONSE_ERRORS
from fin_query.adapters.openai import OpenAIRequestAdapter
from fin_query.types import (
    CompletionRequest,
    CompletionResponse,
    StreamChunk,
    ToolCompletionResponse,
    ToolDefinition,
)

from .base import BaseAsyncLLM

DEFAULT_MODEL: Final = "gpt-4o"
COMPATIBLE_DEFAULT_MODEL: Final = "default"
# Local OpenAI-compatible servers usually ignore the key but the SDK requires one
PLACEHOLDER_API_KEY: Final = "not-needed"
DEFAULT_TIMEOUT: Final = 60.0
AVAILABILITY_TIMEOUT: Final = 5.0


class OpenAILLM(BaseAsyncLLM):
    """
    OpenAI Chat Completions client (async-only).

    One class serves both ``openai`` and ``openai-compatible`` configs; they
    differ only in base URL and default model.
    Use ``OpenAILLM.from_client`` when you already have an ``AsyncOpenAI`` instance.
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
        name: str = "openai",
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(model=model or DEFAULT_MODEL, logger=logger, name=name, base_url=base_url)
        self._client = AsyncOpenAI(
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
            base_url=base_url,
            http_client=http_client,
        )
        self._adapter = OpenAIRequestAdapter()

    # Alternate constructor
    @classmethod
    def from_client(
        cls,
        client: AsyncOpenAI,
        model: Optional[str] = None,
        *,
        logger: Optional[logging.Logger] = None,
        name: str = "openai",
    ) -> Self:
        """
        Build an ``OpenAILLM`` around an already-configured ``AsyncOpenAI`` client.
        """
        if not isinstance(client, AsyncOpenAI):
            raise TypeError(
                f"OpenAILLM.from_client expects AsyncOpenAI; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        BaseAsyncLLM.__init__(self, model=model or DEFAULT_MODEL, logger=logger, name=name)
        self._client = client
        self._adapter = OpenAIRequestAdapter()
        return self

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        args = {
            "model": self.model,
            "messages": self._adapter.build_simple_messages(
                request.system_prompt, request.messages
            ),
            **self._adapter.build_params(
                max_tokens=request.max_tokens or 1024,
                temperature=request.temperature,
                response_format=request.response_format,
            ),
        }
        self._log(f"Sending completion to {self.model}", logging.DEBUG)
        try:
            raw = await self._client.chat.completions.create(**args)
        except Exception as exc:
            raise self._provider_error(exc) from exc
        try:
            return self._adapter.from_provider(raw, self.name)
        except MALFORMED_RESPONSE_ERRORS as exc:
            # e.g. a compatible server returning no choices
            raise self._provider_error(exc) from exc

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        args = {
            "model": self.model,
            "messages": self._adapter.build_simple_messages(
                request.system_prompt, request.messages
            ),
            "stream": True,
            **self._adapter.build_params(
                max_tokens=request.max_tokens or 1024,
                temperature=request.temperature,
                response_format=request.response_format,
            ),
        }
        self._log(f"Streaming completion from {self.model}", logging.DEBUG)
        try:
            chunks = await self._client.chat.completions.create(**args)
            async for chunk in chunks:
                text = self._adapter.stream_text(chunk)
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
            "model": self.model,
            "messages": self._adapter.build_messages(request.system_prompt, request.messages),
            **self._adapter.build_params(
                max_tokens=request.max_tokens or 4096,
                temperature=request.temperature,
                response_format=request.response_format,
            ),
        }
        if tools:
            args["tools"] = self._adapter.build_tools(tools)
            args["tool_choice"] = "auto"
        self._log(
            f"Sending tool completion to {self.model} ({len(request.messages)} messages)",
            logging.DEBUG,
        )
        try:
            raw = await self._client.chat.completions.create(**args)
        except Exception as exc:
            raise self._provider_error(exc) from exc
        try:
            return self._adapter.tool_response_from_provider(raw, self.name)
        except MALFORMED_RESPONSE_ERRORS as exc:
            raise self._provider_error(exc) from exc

    async def is_available(self) -> bool:
        try:
            await self._client.with_options(
                timeout=AVAILABILITY_TIMEOUT, max_retries=0
            ).models.list()
        except Exception as exc:
            self._log(f"Availability check failed: {exc}", logging.WARNING)
            return False
        return True
