"""Provider configuration records and process-level settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol, Sequence

from dotenv import load_dotenv

__all__ = ["ProviderConfig", "Settings", "ConfigStore", "InMemoryConfigStore"]

SYSTEM_DEFAULT_NAME = "System Default"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ProviderConfig:
    """One user-owned LLM provider entry.

    ``api_key_enc`` is opaque ciphertext; only the factory decrypts it.
    Lower ``priority`` is tried first.
    """

    user_id: str
    provider: str
    model: Optional[str] = None
    base_url: Optional[str] = None
    api_key_enc: Optional[str] = None
    priority: int = 0
    is_active: bool = True
    display_name: Optional[str] = None
    id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class Settings:
    """Deployment-wide fallback provider, used when a user has configured none."""

    default_provider: Optional[str] = None
    default_model: Optional[str] = None
    default_base_url: Optional[str] = None
    default_api_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> Settings:
        load_dotenv()
        return cls(
            default_provider=os.getenv("AI_DEFAULT_PROVIDER") or None,
            default_model=os.getenv("AI_DEFAULT_MODEL") or None,
            default_base_url=os.getenv("AI_DEFAULT_BASE_URL") or None,
            default_api_key=os.getenv("AI_DEFAULT_API_KEY") or None,
        )


class ConfigStore(Protocol):
    async def list_active(self, user_id: str) -> Sequence[ProviderConfig]: ...


class InMemoryConfigStore:
    """Dict-backed ``ConfigStore`` for scripts and tests."""

    def __init__(self, configs: Sequence[ProviderConfig] = ()) -> None:
        self._configs: list[ProviderConfig] = list(configs)

    def add(self, config: ProviderConfig) -> None:
        self._configs.append(config)

    async def list_active(self, user_id: str) -> list[ProviderConfig]:
        return [c for c in self._configs if c.user_id == user_id and c.is_active]
