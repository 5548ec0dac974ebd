"""
Provider-neutral dataclasses for tool use.

They are intentionally minimal: everything vendor-specific lives in adapters.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

__all__ = ["ToolDefinition", "ToolCall", "Source", "ToolExecutionResult"]


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """A tool the model may call. Names are unique within one catalog."""
    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass(slots=True)
class ToolCall:
    """A model-agnostic request emitted by the LLM to call a local tool."""
    id: str                     # vendor-assigned or synthesized
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Source:
    """Provenance descriptor for data fed back to the model."""
    type: str
    description: str
    date_range: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.date_range is not None:
            data["dateRange"] = self.date_range
        return data


@dataclass(slots=True)
class ToolExecutionResult:
    """What the tool executor hands back to the agent loop.

    ``data`` is opaque to the loop; it is only re-serialized into a tool message.
    """
    data: Any
    summary: str
    sources: list[Source] = field(default_factory=list)
