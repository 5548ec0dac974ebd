"""Priority-ordered provider selection with one-shot fallback."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, cast

from fin_query._exceptions import (
    AllProvidersFailedError,
    ConfigurationError,
    NoProviderError,
)
from fin_query.config import SYSTEM_DEFAULT_NAME, ConfigStore, ProviderConfig, Settings
from fin_query.factory import ProviderFactory
from fin_query.providers import ToolUseProvider
from fin_query.types import CompletionRequest, CompletionResponse
from fin_query.usage import UsageRecord, UsageRecorder, record_usage_safely

__all__ = ["ProviderSelector", "ConnectionTestResult", "ProviderStatus"]

logger = logging.getLogger(__name__)

NO_PROVIDERS_MESSAGE = (
    "No active AI providers configured. Please configure a provider in AI Settings."
)
NO_TOOL_PROVIDER_MESSAGE = (
    "No AI provider with tool use support configured. Natural language queries "
    "require a provider that supports tool use. Please configure one in AI Settings."
)
CONNECTION_TEST_FAILED = "Connection test failed. Check your provider settings."


@dataclass(frozen=True, slots=True)
class ConnectionTestResult:
    available: bool
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ProviderStatus:
    configured: bool
    encryption_available: bool
    active_providers: int
    has_system_default: bool
    system_default_provider: Optional[str] = None
    system_default_model: Optional[str] = None


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class ProviderSelector:
    """
    Resolves which provider(s) serve a user's request.

    One-shot completions walk the whole priority list until one succeeds.
    The agent loop instead commits to the first tool-capable provider, since a
    half-finished tool conversation cannot move between vendor encodings.
    """

    def __init__(
        self,
        store: ConfigStore,
        factory: ProviderFactory,
        usage: UsageRecorder,
        settings: Optional[Settings] = None,
    ) -> None:
        self._store = store
        self._factory = factory
        self._usage = usage
        self._settings = settings if settings is not None else Settings.from_env()

    def system_default(self, user_id: str) -> Optional[ProviderConfig]:
        """Build the deployment-wide default config; a new object on every call."""
        settings = self._settings
        if not settings.default_provider:
            return None

        config = ProviderConfig(
            user_id=user_id,
            provider=settings.default_provider,
            model=settings.default_model,
            base_url=settings.default_base_url,
            priority=0,
            is_active=True,
            display_name=SYSTEM_DEFAULT_NAME,
        )
        if settings.default_api_key and self._factory.cipher.is_configured():
            config.api_key_enc = self._factory.cipher.encrypt(settings.default_api_key)
        return config

    async def active_configs(self, user_id: str) -> list[ProviderConfig]:
        configs = [c for c in await self._store.list_active(user_id) if c.is_active]
        if configs:
            # sorted() is stable, so equal keys keep store order
            return sorted(configs, key=lambda c: (c.priority, c.created_at))

        default = self.system_default(user_id)
        return [default] if default is not None else []

    async def complete(
        self,
        user_id: str,
        request: CompletionRequest,
        feature: str,
    ) -> CompletionResponse:
        configs = await self.active_configs(user_id)
        if not configs:
            raise NoProviderError(NO_PROVIDERS_MESSAGE)

        errors: list[str] = []
        for config in configs:
            provider = self._factory.create_provider(config)
            start = time.monotonic()
            try:
                response = await provider.complete(request)
            except ConfigurationError:
                raise
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                errors.append(f"{config.provider}: {message}")
                logger.warning("AI provider %s failed: %s", config.provider, message)
                await record_usage_safely(
                    self._usage,
                    UsageRecord(
                        user_id=user_id,
                        provider=config.provider,
                        model=config.model or "unknown",
                        feature=feature,
                        input_tokens=0,
                        output_tokens=0,
                        duration_ms=_elapsed_ms(start),
                        error=message,
                    ),
                    logger,
                )
                continue
            finally:
                await provider.aclose()

            await record_usage_safely(
                self._usage,
                UsageRecord(
                    user_id=user_id,
                    provider=config.provider,
                    model=response.model,
                    feature=feature,
                    input_tokens=response.usage.input_tokens,
                    output_tokens=response.usage.output_tokens,
                    duration_ms=_elapsed_ms(start),
                ),
                logger,
            )
            return response

        failure = AllProvidersFailedError(errors)
        logger.error("%s", failure)
        raise failure

    async def get_tool_use_provider(self, user_id: str) -> ToolUseProvider:
        """First tool-capable provider in priority order; the caller must ``aclose`` it."""
        configs = await self.active_configs(user_id)
        if not configs:
            raise NoProviderError(NO_PROVIDERS_MESSAGE)

        for config in configs:
            provider = self._factory.create_provider(config)
            if provider.supports_tool_use:
                return cast(ToolUseProvider, provider)
            await provider.aclose()

        raise NoProviderError(NO_TOOL_PROVIDER_MESSAGE)

    async def test_connection(self, config: ProviderConfig) -> ConnectionTestResult:
        try:
            async with self._factory.create_provider(config) as provider:
                available = await provider.is_available()
        except Exception as exc:
            logger.warning("Test connection failed for config %s: %s", config.id, exc)
            return ConnectionTestResult(available=False, error=CONNECTION_TEST_FAILED)
        return ConnectionTestResult(available=available)

    async def get_status(self, user_id: str) -> ProviderStatus:
        configs = [c for c in await self._store.list_active(user_id) if c.is_active]
        settings = self._settings
        return ProviderStatus(
            configured=bool(configs),
            encryption_available=self._factory.cipher.is_configured(),
            active_providers=len(configs),
            has_system_default=bool(settings.default_provider),
            system_default_provider=settings.default_provider,
            system_default_model=settings.default_model,
        )
