"""Shared chat types spoken by every provider adapter and by the agent loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import ClassVar, Literal, Optional, Sequence, Union

from fin_query.types.tool import ToolCall

__all__ = [
    "UserMessage",
    "AssistantMessage",
    "ToolMessage",
    "Message",
    "CompletionRequest",
    "TokenUsage",
    "CompletionResponse",
    "ToolCompletionResponse",
    "StopReason",
    "StreamChunk",
    "validate_conversation",
]


@dataclass(slots=True)
class UserMessage:
    content: str
    role: ClassVar[Literal["user"]] = "user"


@dataclass(slots=True)
class AssistantMessage:
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    role: ClassVar[Literal["assistant"]] = "assistant"


@dataclass(slots=True)
class ToolMessage:
    tool_call_id: str           # must match a ToolCall.id from the preceding assistant turn
    name: str
    content: str
    role: ClassVar[Literal["tool"]] = "tool"


Message = Union[UserMessage, AssistantMessage, ToolMessage]


class StopReason(StrEnum):
    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"


@dataclass
class CompletionRequest:
    """Parameters for one completion exchange."""

    system_prompt: str
    messages: list[Message]
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    # "json" asks the vendor for its JSON output mode where it has one
    response_format: Optional[str] = None


@dataclass(slots=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class CompletionResponse:
    content: str
    usage: TokenUsage
    model: str
    provider: str


@dataclass
class ToolCompletionResponse:
    content: str
    tool_calls: list[ToolCall]
    usage: TokenUsage
    model: str
    provider: str
    stop_reason: StopReason

    @property
    def wants_tools(self) -> bool:
        return self.stop_reason == StopReason.TOOL_USE and bool(self.tool_calls)


@dataclass(slots=True)
class StreamChunk:
    content: str
    done: bool = False


def validate_conversation(messages: Sequence[Message]) -> None:
    """
    Check that every tool message answers a call from the closest preceding
    assistant turn that requested tools.

    Raises:
        ValueError: on the first tool message that cannot be paired.
    """
    open_ids: set[str] = set()
    for index, msg in enumerate(messages):
        if isinstance(msg, AssistantMessage):
            open_ids = {tc.id for tc in msg.tool_calls}
        elif isinstance(msg, ToolMessage):
            if msg.tool_call_id not in open_ids:
                raise ValueError(
                    f"Tool message at index {index} references unknown "
                    f"tool call id {msg.tool_call_id!r}"
                )
        else:
            open_ids = set()
