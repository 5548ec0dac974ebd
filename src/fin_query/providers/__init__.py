from __future__ import annotations

from enum import StrEnum
from typing import Final

from .anthropic import DEFAULT_MODEL as ANTHROPIC_DEFAULT_MODEL
from .anthropic import AnthropicLLM
from .base import AIProvider, BaseAsyncLLM, ToolUseProvider
from .ollama import DEFAULT_MODEL as OLLAMA_DEFAULT_MODEL
from .ollama import OllamaLLM
from .openai import COMPATIBLE_DEFAULT_MODEL, OpenAILLM
from .openai import DEFAULT_MODEL as OPENAI_DEFAULT_MODEL


class ProviderKind(StrEnum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OPENAI_COMPATIBLE = "openai-compatible"
    OLLAMA = "ollama"


DEFAULT_MODELS: Final[dict[ProviderKind, str]] = {
    ProviderKind.ANTHROPIC: ANTHROPIC_DEFAULT_MODEL,
    ProviderKind.OPENAI: OPENAI_DEFAULT_MODEL,
    ProviderKind.OPENAI_COMPATIBLE: COMPATIBLE_DEFAULT_MODEL,
    ProviderKind.OLLAMA: OLLAMA_DEFAULT_MODEL,
}

REQUIRES_BASE_URL: Final[frozenset[ProviderKind]] = frozenset(
    {ProviderKind.OPENAI_COMPATIBLE, ProviderKind.OLLAMA}
)

__all__ = [
    "AIProvider",
    "ToolUseProvider",
    "BaseAsyncLLM",
    "AnthropicLLM",
    "OpenAILLM",
    "OllamaLLM",
    "ProviderKind",
    "DEFAULT_MODELS",
    "REQUIRES_BASE_URL",
]
