from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from fin_query._exceptions import ConfigurationError
from fin_query.config import ProviderConfig
from fin_query.providers import (
    DEFAULT_MODELS,
    REQUIRES_BASE_URL,
    AnthropicLLM,
    BaseAsyncLLM,
    OllamaLLM,
    OpenAILLM,
    ProviderKind,
)
from fin_query.providers.openai import PLACEHOLDER_API_KEY

__all__ = ["CredentialCipher", "ProviderFactory"]


class CredentialCipher(Protocol):
    def is_configured(self) -> bool: ...

    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...


# (model, base_url, api_key, logger) -> adapter
Builder = Callable[[str, Optional[str], Optional[str], Optional[logging.Logger]], BaseAsyncLLM]


def _anthropic(model, base_url, api_key, logger) -> BaseAsyncLLM:
    return AnthropicLLM(model, api_key=api_key, base_url=base_url, logger=logger)


def _openai(model, base_url, api_key, logger) -> BaseAsyncLLM:
    return OpenAILLM(model, api_key=api_key, base_url=base_url, logger=logger)


def _openai_compatible(model, base_url, api_key, logger) -> BaseAsyncLLM:
    return OpenAILLM(
        model,
        api_key=api_key or PLACEHOLDER_API_KEY,
        base_url=base_url,
        logger=logger,
        name="openai-compatible",
    )


def _ollama(model, base_url, api_key, logger) -> BaseAsyncLLM:
    return OllamaLLM(base_url, model, logger=logger)


# map provider kind to its adapter builder
_LLM_REGISTRY: dict[ProviderKind, Builder] = {
    ProviderKind.ANTHROPIC: _anthropic,
    ProviderKind.OPENAI: _openai,
    ProviderKind.OPENAI_COMPATIBLE: _openai_compatible,
    ProviderKind.OLLAMA: _ollama,
}


class ProviderFactory:
    """
    Turns a stored ``ProviderConfig`` into a ready vendor client.

    Args:
        cipher: Decrypts ``api_key_enc``; never asked to decrypt a missing key.
        registry: Overrides the kind -> builder table (tests inject fakes here).
        logger: Passed through to every client built.
    """

    def __init__(
        self,
        cipher: CredentialCipher,
        registry: Optional[dict[ProviderKind, Builder]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.cipher = cipher
        self._registry = dict(_LLM_REGISTRY if registry is None else registry)
        self._logger = logger

    def create_provider(self, config: ProviderConfig) -> BaseAsyncLLM:
        try:
            kind = ProviderKind(config.provider)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown AI provider: {config.provider}") from exc

        try:
            builder = self._registry[kind]
        except KeyError as exc:
            raise ConfigurationError(f"Unsupported AI provider: {kind}") from exc

        if kind in REQUIRES_BASE_URL and not config.base_url:
            raise ConfigurationError(f"A base URL is required for {kind} providers")

        api_key: Optional[str] = None
        if config.api_key_enc:
            if not self.cipher.is_configured():
                raise ConfigurationError(
                    "AI_ENCRYPTION_KEY is not configured. Cannot decrypt the provider API key."
                )
            api_key = self.cipher.decrypt(config.api_key_enc)

        model = config.model or DEFAULT_MODELS[kind]
        try:
            return builder(model, config.base_url, api_key, self._logger)
        except ConfigurationError:
            raise
        except Exception as exc:
            # e.g. the SDK refusing to start without any credential
            raise ConfigurationError(f"Could not create {kind} provider: {exc}") from exc
