"""Anthropic adapter for pure request/response transformations."""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from anthropic.types import Message as AnthropicMessage

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


class AnthropicRequestAdapter:
    """Adapter for converting between the shared format and Anthropic's Messages API."""

    def build_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Convert shared messages, including tool turns, to Anthropic's format."""
        anthropic_messages: list[dict[str, Any]] = []

        for msg in messages:
            if isinstance(msg, UserMessage):
                anthropic_messages.append({"role": "user", "content": msg.content})

            elif isinstance(msg, AssistantMessage):
                if not msg.tool_calls:
                    anthropic_messages.append({"role": "assistant", "content": msg.content})
                    continue
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.input,
                    })
                anthropic_messages.append({"role": "assistant", "content": blocks})

            elif isinstance(msg, ToolMessage):
                # Anthropic mandates 'user' here; consecutive results share one turn
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                last = anthropic_messages[-1] if anthropic_messages else None
                if last is not None and _is_tool_result_turn(last):
                    last["content"].append(block)
                else:
                    anthropic_messages.append({"role": "user", "content": [block]})

        return anthropic_messages

    def build_simple_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Text-only view of the conversation for plain completions."""
        return [
            {"role": msg.role, "content": msg.content}
            for msg in messages
            if isinstance(msg, (UserMessage, AssistantMessage))
        ]

    def build_tools(self, tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.input_schema,
            }
            for tool in tools
        ]

    def build_params(
        self,
        *,
        model: str,
        system_prompt: str,
        max_tokens: int,
        temperature: Optional[float],
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"model": model, "max_tokens": max_tokens}
        if system_prompt:
            params["system"] = system_prompt
        if temperature is not None:
            params["temperature"] = temperature
        return params

    def map_stop_reason(self, stop_reason: Optional[str]) -> StopReason:
        if stop_reason == "tool_use":
            return StopReason.TOOL_USE
        if stop_reason == "max_tokens":
            return StopReason.MAX_TOKENS
        return StopReason.END_TURN

    def from_provider(self, raw: AnthropicMessage, provider: str) -> CompletionResponse:
        """Convert an Anthropic response to a plain completion."""
        return CompletionResponse(
            content=_joined_text(raw),
            usage=_usage(raw),
            model=raw.model,
            provider=provider,
        )

    def tool_response_from_provider(
        self, raw: AnthropicMessage, provider: str
    ) -> ToolCompletionResponse:
        """Convert an Anthropic response to a tool-aware completion."""
        tool_calls = [
            ToolCall(
                id=block.id,
                name=block.name,
                input=dict(block.input) if hasattr(block.input, "items") else {},
            )
            for block in raw.content or []
            if block.type == "tool_use"
        ]
        return ToolCompletionResponse(
            content=_joined_text(raw),
            tool_calls=tool_calls,
            usage=_usage(raw),
            model=raw.model,
            provider=provider,
            stop_reason=self.map_stop_reason(raw.stop_reason),
        )

    def stream_text(self, raw_event: Any) -> str:
        """Extract text from an Anthropic streaming event, or '' for other events."""
        if getattr(raw_event, "type", None) != "content_block_delta":
            return ""
        delta = getattr(raw_event, "delta", None)
        if getattr(delta, "type", None) == "text_delta":
            return delta.text
        return ""

    def to_messages(self, native: Sequence[dict[str, Any]]) -> list[Message]:
        """Convert Anthropic-format messages back to the shared format."""
        messages: list[Message] = []
        names: dict[str, str] = {}

        for item in native:
            content = item.get("content", "")
            if item["role"] == "assistant":
                if isinstance(content, str):
                    messages.append(AssistantMessage(content=content))
                    continue
                text = "".join(b.get("text", "") for b in content if b.get("type") == "text")
                calls = [
                    ToolCall(id=b["id"], name=b["name"], input=dict(b.get("input") or {}))
                    for b in content
                    if b.get("type") == "tool_use"
                ]
                names.update({tc.id: tc.name for tc in calls})
                messages.append(AssistantMessage(content=text, tool_calls=calls))
            elif isinstance(content, str):
                messages.append(UserMessage(content=content))
            else:
                for block in content:
                    if block.get("type") == "tool_result":
                        call_id = block["tool_use_id"]
                        result = block.get("content", "")
                        if not isinstance(result, str):
                            result = json.dumps(result)
                        messages.append(
                            ToolMessage(
                                tool_call_id=call_id,
                                name=names.get(call_id, ""),
                                content=result,
                            )
                        )
                    elif block.get("type") == "text":
                        messages.append(UserMessage(content=block.get("text", "")))

        return messages


def _is_tool_result_turn(message: dict[str, Any]) -> bool:
    content = message.get("content")
    return (
        message.get("role") == "user"
        and isinstance(content, list)
        and bool(content)
        and content[0].get("type") == "tool_result"
    )


def _joined_text(raw: AnthropicMessage) -> str:
    return "".join(block.text for block in raw.content or [] if block.type == "text")


def _usage(raw: AnthropicMessage) -> TokenUsage:
    usage = raw.usage
    if usage is None:
        return TokenUsage()
    return TokenUsage(
        input_tokens=usage.input_tokens or 0,
        output_tokens=usage.output_tokens or 0,
    )
