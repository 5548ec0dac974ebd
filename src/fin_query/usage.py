"""Token usage records and the recorder contract."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

__all__ = [
    "UsageRecord",
    "UsageRecorder",
    "InMemoryUsageLog",
    "record_usage_safely",
]

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class UsageRecord:
    user_id: str
    provider: str
    model: str
    feature: str
    input_tokens: int
    output_tokens: int
    duration_ms: int
    error: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)


class UsageRecorder(Protocol):
    async def log_usage(self, record: UsageRecord) -> None: ...


async def record_usage_safely(
    recorder: UsageRecorder,
    record: UsageRecord,
    log: Optional[logging.Logger] = None,
) -> None:
    """Write *record*, logging and discarding any recorder failure."""
    try:
        await recorder.log_usage(record)
    except Exception as exc:
        (log or logger).warning(
            "Failed to record AI usage for %s/%s: %s", record.provider, record.feature, exc
        )


def _bucket(rows: list[UsageRecord], key: str) -> list[dict[str, Any]]:
    grouped: dict[str, dict[str, Any]] = {}
    for row in rows:
        name = getattr(row, key)
        entry = grouped.setdefault(
            name, {key: name, "requests": 0, "inputTokens": 0, "outputTokens": 0}
        )
        entry["requests"] += 1
        entry["inputTokens"] += row.input_tokens
        entry["outputTokens"] += row.output_tokens
    return list(grouped.values())


class InMemoryUsageLog:
    """List-backed ``UsageRecorder`` with the summary queries a settings page needs."""

    RECENT_LIMIT = 50

    def __init__(self) -> None:
        self.records: list[UsageRecord] = []

    async def log_usage(self, record: UsageRecord) -> None:
        self.records.append(record)

    def summary(self, user_id: str, days: Optional[int] = None) -> dict[str, Any]:
        rows = [r for r in self.records if r.user_id == user_id]
        if days is not None:
            since = _utcnow() - timedelta(days=days)
            rows = [r for r in rows if r.created_at >= since]

        recent = sorted(rows, key=lambda r: r.created_at, reverse=True)[: self.RECENT_LIMIT]
        return {
            "totalRequests": len(rows),
            "totalInputTokens": sum(r.input_tokens for r in rows),
            "totalOutputTokens": sum(r.output_tokens for r in rows),
            "byProvider": _bucket(rows, "provider"),
            "byFeature": _bucket(rows, "feature"),
            "recentLogs": [
                {
                    "provider": r.provider,
                    "model": r.model,
                    "feature": r.feature,
                    "inputTokens": r.input_tokens,
                    "outputTokens": r.output_tokens,
                    "durationMs": r.duration_ms,
                    "error": r.error,
                    "createdAt": r.created_at.isoformat(),
                }
                for r in recent
            ],
        }

    def purge_older_than(self, days: int = 30) -> int:
        """Drop records older than *days*; returns how many were removed."""
        cutoff = _utcnow() - timedelta(days=days)
        kept = [r for r in self.records if r.created_at >= cutoff]
        removed = len(self.records) - len(kept)
        self.records = kept
        if removed:
            logger.info("Purged %d AI usage records older than %d days", removed, days)
        return removed
