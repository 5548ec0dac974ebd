"""Provider contract and the shared plumbing behind each vendor client."""
from __future__ import annotations

import logging
from typing import AsyncIterator, Optional, Protocol, Self, Sequence, runtime_checkable

from fin_query._exceptions import ProviderError, classify_error
from fin_query.types import (
    CompletionRequest,
    CompletionResponse,
    StreamChunk,
    ToolCompletionResponse,
    ToolDefinition,
)

__all__ = ["AIProvider", "ToolUseProvider", "BaseAsyncLLM"]


@runtime_checkable
class AIProvider(Protocol):
    """Operations every vendor client offers.

    ``complete_with_tools`` is optional: check ``supports_tool_use`` first.
    """

    name: str
    model: str
    supports_streaming: bool
    supports_tool_use: bool

    async def complete(self, request: CompletionRequest) -> CompletionResponse: ...

    def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]: ...

    async def is_available(self) -> bool: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class ToolUseProvider(AIProvider, Protocol):
    async def complete_with_tools(
        self,
        request: CompletionRequest,
        tools: Sequence[ToolDefinition],
    ) -> ToolCompletionResponse: ...


class BaseAsyncLLM:
    """
    Shared state for vendor clients. All implementations are async-first.

    Capabilities are plain class attributes; subclasses that cannot stream or
    call tools set them to False and leave the operation out.
    """

    supports_streaming: bool = True
    supports_tool_use: bool = False

    def __init__(
        self,
        model: str,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        """
        Initializes the base LLM client.

        Args:
            model: The identifier of the LLM model to be used.
            logger: Optional logger instance. If None, a logger named after
                    this module will be used.
            name: Provider name reported in responses and usage records.
                  If None, defaults to the concrete class's name.
            base_url: Endpoint override, when the vendor allows one.
        """
        self.model = model
        self.logger = logger or logging.getLogger(__name__)
        self.name = name if name is not None else self.__class__.__name__
        self.base_url = base_url

    def _provider_error(self, exc: Exception) -> ProviderError:
        """Wrap a vendor exception so callers only ever see ProviderError."""
        return classify_error(exc, self.name, self.logger)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

    # --- lifecycle ---------------------------------------------------------
    async def aclose(self) -> None:
        """
        Close the underlying HTTP client and its connection pool.
        Safe to call multiple times.
        """
        client = getattr(self, "_client", None)
        # httpx clients expose aclose(), the vendor SDKs close()
        close = getattr(client, "aclose", None) or getattr(client, "close", None)
        if close:
            await close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
