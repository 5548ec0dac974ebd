from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Final, Optional, Sequence

import httpx

from fin_query._exceptions import ProviderError
from fin_query.adapters.ollama import OllamaRequestAdapter
from fin_query.types import (
    CompletionRequest,
    CompletionResponse,
    StreamChunk,
    TokenUsage,
    ToolCompletionResponse,
    ToolDefinition,
)

from .base import BaseAsyncLLM

DEFAULT_MODEL: Final = "llama3"
# Local models can be slow to load on first use
DEFAULT_TIMEOUT: Final = 300.0
AVAILABILITY_TIMEOUT: Final = 5.0
JSON_HEADERS: Final = {"Content-Type": "application/json"}


class OllamaLLM(BaseAsyncLLM):
    """
    Client for a self-hosted Ollama server, spoken to over its REST API.

    ``complete`` and ``stream`` read the newline-delimited JSON stream;
    ``complete_with_tools`` asks for a single JSON reply.
    """

    supports_streaming = True
    supports_tool_use = True

    def __init__(
        self,
        base_url: str,
        model: Optional[str] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        logger: Optional[logging.Logger] = None,
        name: str = "ollama",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            model=model or DEFAULT_MODEL,
            logger=logger,
            name=name,
            base_url=base_url.rstrip("/"),
        )
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._adapter = OllamaRequestAdapter()

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}/api/chat"

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        body = self._adapter.build_body(
            model=self.model,
            messages=self._adapter.build_simple_messages(request.system_prompt, request.messages),
            stream=True,
            max_tokens=request.max_tokens or 1024,
            temperature=request.temperature,
            response_format=request.response_format,
        )
        self._log(f"Sending completion to {self.model}", logging.DEBUG)

        parts: list[str] = []
        usage = TokenUsage()
        model = self.model
        async for payload in self._stream_payloads(body):
            message = payload.get("message") or {}
            if message.get("content"):
                parts.append(message["content"])
            if payload.get("done"):
                usage = self._adapter.usage_from(payload)
                model = payload.get("model") or model

        return CompletionResponse(
            content="".join(parts),
            usage=usage,
            model=model,
            provider=self.name,
        )

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        body = self._adapter.build_body(
            model=self.model,
            messages=self._adapter.build_simple_messages(request.system_prompt, request.messages),
            stream=True,
            max_tokens=request.max_tokens or 1024,
            temperature=request.temperature,
            response_format=request.response_format,
        )
        self._log(f"Streaming completion from {self.model}", logging.DEBUG)

        async for payload in self._stream_payloads(body):
            content = (payload.get("message") or {}).get("content") or ""
            if content:
                yield StreamChunk(content=content, done=False)
        yield StreamChunk(content="", done=True)

    async def complete_with_tools(
        self,
        request: CompletionRequest,
        tools: Sequence[ToolDefinition],
    ) -> ToolCompletionResponse:
        body = self._adapter.build_body(
            model=self.model,
            messages=self._adapter.build_messages(request.system_prompt, request.messages),
            stream=False,
            max_tokens=request.max_tokens or 4096,
            temperature=request.temperature,
            response_format=request.response_format,
            tools=self._adapter.build_tools(tools),
        )
        self._log(
            f"Sending tool completion to {self.model} ({len(request.messages)} messages)",
            logging.DEBUG,
        )
        try:
            response = await self._client.post(self.chat_url, json=body, headers=JSON_HEADERS)
        except Exception as exc:
            raise self._provider_error(exc) from exc
        self._raise_for_status(response)
        if not response.content:
            raise ProviderError("No response body from Ollama", provider=self.name)
        try:
            payload = response.json()
        except ValueError as exc:
            raise self._provider_error(exc) from exc
        return self._adapter.tool_response_from_provider(payload, self.model, self.name)

    async def is_available(self) -> bool:
        try:
            response = await self._client.get(
                f"{self.base_url}/api/tags", timeout=AVAILABILITY_TIMEOUT
            )
        except Exception as exc:
            self._log(f"Availability check failed: {exc}", logging.WARNING)
            return False
        return response.is_success

    async def _stream_payloads(self, body: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        """Yield each JSON object of an NDJSON chat stream, skipping malformed lines."""
        received = False
        try:
            async with self._client.stream(
                "POST", self.chat_url, json=body, headers=JSON_HEADERS
            ) as response:
                if not response.is_success:
                    await response.aread()
                    self._raise_for_status(response)
                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        payload = json.loads(line)
                    except json.JSONDecodeError:
                        self._log(f"Skipping malformed stream line: {line[:80]}", logging.DEBUG)
                        continue
                    received = True
                    yield payload
        except ProviderError:
            raise
        except Exception as exc:
            raise self._provider_error(exc) from exc
        if not received:
            raise ProviderError("No response body from Ollama", provider=self.name)

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        raise ProviderError(
            f"Ollama request failed: {response.status_code} {response.reason_phrase}",
            provider=self.name,
        )
