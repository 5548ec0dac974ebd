"""
Typed events emitted by the query agent.

Every run produces exactly one terminal event (``done`` or ``error``) and it
is always the last one. ``to_dict`` gives the camelCase wire shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from fin_query.types.tool import Source

__all__ = [
    "QueryUsage",
    "ThinkingEvent",
    "ToolStartEvent",
    "ToolResultEvent",
    "ContentEvent",
    "SourcesEvent",
    "DoneEvent",
    "ErrorEvent",
    "StreamEvent",
]


@dataclass(slots=True)
class QueryUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    tool_calls: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "toolCalls": self.tool_calls,
        }


@dataclass(slots=True)
class ThinkingEvent:
    message: str
    type: ClassVar[str] = "thinking"
    terminal: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


@dataclass(slots=True)
class ToolStartEvent:
    name: str
    description: str = ""
    type: ClassVar[str] = "tool_start"
    terminal: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "name": self.name, "description": self.description}


@dataclass(slots=True)
class ToolResultEvent:
    name: str
    summary: str
    type: ClassVar[str] = "tool_result"
    terminal: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "name": self.name, "summary": self.summary}


@dataclass(slots=True)
class ContentEvent:
    text: str
    type: ClassVar[str] = "content"
    terminal: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(slots=True)
class SourcesEvent:
    sources: list[Source] = field(default_factory=list)
    type: ClassVar[str] = "sources"
    terminal: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "sources": [s.to_dict() for s in self.sources]}


@dataclass(slots=True)
class DoneEvent:
    usage: QueryUsage
    type: ClassVar[str] = "done"
    terminal: ClassVar[bool] = True

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "usage": self.usage.to_dict()}


@dataclass(slots=True)
class ErrorEvent:
    message: str
    type: ClassVar[str] = "error"
    terminal: ClassVar[bool] = True

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


StreamEvent = Union[
    ThinkingEvent,
    ToolStartEvent,
    ToolResultEvent,
    ContentEvent,
    SourcesEvent,
    DoneEvent,
    ErrorEvent,
]
