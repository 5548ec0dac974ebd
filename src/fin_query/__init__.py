"""
fin-query - natural-language questions over personal finance data, answered by
whichever LLM provider the user has configured.
"""

from ._exceptions import (
    AllProvidersFailedError,
    ConfigurationError,
    FinQueryError,
    NoProviderError,
    ProviderError,
    QueryError,
)
from .agent import QueryAgent
from .config import InMemoryConfigStore, ProviderConfig, Settings
from .context import QueryContextBuilder
from .factory import CredentialCipher, ProviderFactory
from .providers import AnthropicLLM, OllamaLLM, OpenAILLM, ProviderKind
from .selector import ProviderSelector
from .streaming import QueryResult, encode_sse, fold_events, stream_to_sse
from .tools import FINANCIAL_TOOLS, ToolExecutor
from .usage import InMemoryUsageLog, UsageRecord

__version__ = "0.1.0"

__all__ = [
    "AllProvidersFailedError",
    "ConfigurationError",
    "FinQueryError",
    "NoProviderError",
    "ProviderError",
    "QueryError",
    "QueryAgent",
    "InMemoryConfigStore",
    "ProviderConfig",
    "Settings",
    "QueryContextBuilder",
    "CredentialCipher",
    "ProviderFactory",
    "AnthropicLLM",
    "OllamaLLM",
    "OpenAILLM",
    "ProviderKind",
    "ProviderSelector",
    "QueryResult",
    "encode_sse",
    "fold_events",
    "stream_to_sse",
    "FINANCIAL_TOOLS",
    "ToolExecutor",
    "InMemoryUsageLog",
    "UsageRecord",
]
