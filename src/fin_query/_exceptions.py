"""
Error taxonomy for fin-query.

Noisy vendor tracebacks are translated into a `ProviderError` carrying a
short message, while the original exception stays attached for logs.
"""

from __future__ import annotations

import logging
from typing import Final, Optional, Sequence, Type

import anthropic
import httpx
import openai

__all__: tuple[str, ...] = (
    "FinQueryError",
    "ConfigurationError",
    "ProviderError",
    "NoProviderError",
    "AllProvidersFailedError",
    "QueryError",
    "classify_error",
)


class FinQueryError(RuntimeError):
    """Base class for every error raised by fin-query."""


class ConfigurationError(FinQueryError):
    """A provider configuration cannot be turned into a client.

    Never retried and never routed to another provider.
    """


class ProviderError(FinQueryError):
    """A vendor call failed (timeout, bad status, malformed payload).

    Attributes:
        provider: Name of the provider that failed.
        original_exc: The underlying SDK / transport exception, if any.
    """

    provider: str
    original_exc: Optional[Exception]

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        original_exc: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.original_exc = original_exc
        if original_exc is not None:
            self.__cause__ = original_exc


class NoProviderError(FinQueryError):
    """No configured provider is eligible for the requested operation."""


class AllProvidersFailedError(FinQueryError):
    """Every provider in the fallback chain failed.

    Attributes:
        errors: One ``"<provider>: <reason>"`` entry per attempt, in order.
    """

    errors: list[str]

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"All AI providers failed: {'; '.join(self.errors)}")


class QueryError(FinQueryError):
    """A query run ended with an error event."""


RATE_LIMIT_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.RateLimitError,
    anthropic.RateLimitError,
)

TIMEOUT_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APITimeoutError,
    anthropic.APITimeoutError,
    httpx.TimeoutException,
    TimeoutError,
)

CONN_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    httpx.TransportError,
    ConnectionError,
)

STATUS_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIStatusError,
    anthropic.APIStatusError,
)

API_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIError,
    anthropic.APIError,
)

# raised while reading a response body that lacks the expected shape
MALFORMED_RESPONSE_ERRORS: Final[tuple[Type[Exception], ...]] = (
    IndexError,
    KeyError,
    AttributeError,
    TypeError,
    ValueError,
)


def classify_error(
    exc: Exception,
    provider: str,
    logger: Optional[logging.Logger] = None,
) -> ProviderError:
    """Wrap an SDK exception in ProviderError with a friendly, concise message."""
    log = logger or logging.getLogger("fin_query.exceptions")

    if isinstance(exc, ProviderError):
        return exc

    # Order matters: timeouts subclass connection errors in both SDKs.
    if isinstance(exc, RATE_LIMIT_ERRORS):
        msg = "Rate limit exceeded"
    elif isinstance(exc, TIMEOUT_ERRORS):
        msg = "Request timed out"
    elif isinstance(exc, CONN_ERRORS):
        msg = "Unable to reach the provider"
    elif isinstance(exc, STATUS_ERRORS):
        msg = f"API error ({getattr(exc, 'status_code', 'unknown')})"
    elif isinstance(exc, API_ERRORS):
        msg = "Provider reported an error"
    elif isinstance(exc, MALFORMED_RESPONSE_ERRORS):
        msg = "Malformed response from provider"
    else:
        msg = f"{exc.__class__.__name__}: {exc}"

    log.warning("Provider %s failed: %s", provider, exc, exc_info=exc)
    return ProviderError(msg, provider=provider, original_exc=exc)
