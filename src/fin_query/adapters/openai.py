"""OpenAI adapter for pure request/response transformations.

Also used for any OpenAI-compatible endpoint (vLLM, LM Studio, gateways).
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional, Sequence

from openai.types.chat import ChatCompletion, ChatCompletionChunk

from fin_query.types import (
    AssistantMessage,
    CompletionResponse,
    Message,
    StopReason,
    TokenUsage,
    ToolCall,
    ToolCompletionResponse,
    ToolDefinition,
    ToolMessage,
    UserMessage,
)


class OpenAIRequestAdapter:
    """Adapter for converting between the shared format and Chat Completions."""

    def build_messages(
        self, system_prompt: str, messages: Sequence[Message]
    ) -> list[dict[str, Any]]:
        """Convert shared messages to OpenAI's expected format."""
        openai_messages: list[dict[str, Any]] = []
        if system_prompt:
            openai_messages.append({"role": "system", "content": system_prompt})

        for msg in messages:
            if isinstance(msg, UserMessage):
                openai_messages.append({"role": "user", "content": msg.content})
            elif isinstance(msg, AssistantMessage):
                openai_msg: dict[str, Any] = {"role": "assistant", "content": msg.content}
                if msg.tool_calls:
                    openai_msg["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.name,
                                "arguments": json.dumps(tc.input),
                            },
                        }
                        for tc in msg.tool_calls
                    ]
                    # the API expects null content alongside tool_calls
                    openai_msg["content"] = msg.content or None
                openai_messages.append(openai_msg)
            elif isinstance(msg, ToolMessage):
                openai_messages.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id,
                    "content": msg.content,
                })

        return openai_messages

    def build_simple_messages(
        self, system_prompt: str, messages: Sequence[Message]
    ) -> list[dict[str, Any]]:
        """Text-only view of the conversation for plain completions."""
        text_only = [m for m in messages if isinstance(m, (UserMessage, AssistantMessage))]
        return self.build_messages(
            system_prompt,
            [
                AssistantMessage(content=m.content) if isinstance(m, AssistantMessage) else m
                for m in text_only
            ],
        )

    def build_tools(self, tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema,
                },
            }
            for tool in tools
        ]

    def build_params(
        self,
        *,
        max_tokens: int,
        temperature: Optional[float],
        response_format: Optional[str],
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"max_tokens": max_tokens}
        if temperature is not None:
            params["temperature"] = temperature
        if response_format == "json":
            params["response_format"] = {"type": "json_object"}
        return params

    def map_stop_reason(
        self, finish_reason: Optional[str], has_tool_calls: bool
    ) -> StopReason:
        # Some compatible servers report "stop" even when tool_calls are present
        if has_tool_calls:
            return StopReason.TOOL_USE
        if finish_reason == "length":
            return StopReason.MAX_TOKENS
        return StopReason.END_TURN

    def from_provider(self, raw: ChatCompletion, provider: str) -> CompletionResponse:
        """Convert a ChatCompletion to a plain completion."""
        message = raw.choices[0].message
        return CompletionResponse(
            content=message.content or "",
            usage=_usage(raw),
            model=raw.model,
            provider=provider,
        )

    def tool_response_from_provider(
        self, raw: ChatCompletion, provider: str
    ) -> ToolCompletionResponse:
        """Convert a ChatCompletion to a tool-aware completion."""
        choice = raw.choices[0]
        tool_calls = [
            ToolCall(
                id=tc.id or _synthesize_id(),
                name=tc.function.name,
                input=_parse_arguments(tc.function.arguments),
            )
            for tc in choice.message.tool_calls or []
        ]
        return ToolCompletionResponse(
            content=choice.message.content or "",
            tool_calls=tool_calls,
            usage=_usage(raw),
            model=raw.model,
            provider=provider,
            stop_reason=self.map_stop_reason(choice.finish_reason, bool(tool_calls)),
        )

    def stream_text(self, chunk: ChatCompletionChunk) -> str:
        """Extract the content delta from a streaming chunk."""
        if not chunk.choices:
            return ""
        return chunk.choices[0].delta.content or ""

    def to_messages(self, native: Sequence[dict[str, Any]]) -> list[Message]:
        """Convert OpenAI-format messages back to the shared format (system dropped)."""
        messages: list[Message] = []
        names: dict[str, str] = {}

        for item in native:
            role = item["role"]
            if role == "user":
                messages.append(UserMessage(content=item.get("content") or ""))
            elif role == "assistant":
                calls = [
                    ToolCall(
                        id=tc["id"],
                        name=tc["function"]["name"],
                        input=_parse_arguments(tc["function"].get("arguments")),
                    )
                    for tc in item.get("tool_calls") or []
                ]
                names.update({tc.id: tc.name for tc in calls})
                messages.append(
                    AssistantMessage(content=item.get("content") or "", tool_calls=calls)
                )
            elif role == "tool":
                call_id = item["tool_call_id"]
                messages.append(
                    ToolMessage(
                        tool_call_id=call_id,
                        name=names.get(call_id, ""),
                        content=item.get("content") or "",
                    )
                )

        return messages


def _parse_arguments(arguments: Any) -> dict[str, Any]:
    """Decode tool-call arguments; malformed JSON yields an empty dict."""
    if isinstance(arguments, dict):
        return arguments
    if not arguments:
        return {}
    try:
        parsed = json.loads(arguments)
    except (json.JSONDecodeError, TypeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _synthesize_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"


def _usage(raw: ChatCompletion) -> TokenUsage:
    if raw.usage is None:
        return TokenUsage()
    return TokenUsage(
        input_tokens=raw.usage.prompt_tokens or 0,
        output_tokens=raw.usage.completion_tokens or 0,
    )
