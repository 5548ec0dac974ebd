from .chat import (
    AssistantMessage,
    CompletionRequest,
    CompletionResponse,
    Message,
    StopReason,
    StreamChunk,
    TokenUsage,
    ToolCompletionResponse,
    ToolMessage,
    UserMessage,
    validate_conversation,
)
from .events import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    QueryUsage,
    SourcesEvent,
    StreamEvent,
    ThinkingEvent,
    ToolResultEvent,
    ToolStartEvent,
)
from .tool import Source, ToolCall, ToolDefinition, ToolExecutionResult

__all__ = [
    "AssistantMessage",
    "CompletionRequest",
    "CompletionResponse",
    "Message",
    "StopReason",
    "StreamChunk",
    "TokenUsage",
    "ToolCompletionResponse",
    "ToolMessage",
    "UserMessage",
    "validate_conversation",
    "ContentEvent",
    "DoneEvent",
    "ErrorEvent",
    "QueryUsage",
    "SourcesEvent",
    "StreamEvent",
    "ThinkingEvent",
    "ToolResultEvent",
    "ToolStartEvent",
    "Source",
    "ToolCall",
    "ToolDefinition",
    "ToolExecutionResult",
]
