"""Pure transformation adapters for the supported vendor protocols."""

from .anthropic import AnthropicRequestAdapter
from .ollama import OllamaRequestAdapter
from .openai import OpenAIRequestAdapter

__all__ = [
    "AnthropicRequestAdapter",
    "OllamaRequestAdapter",
    "OpenAIRequestAdapter",
]
