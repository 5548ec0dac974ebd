"""Ollama adapter for pure request/response transformations.

Ollama's ``/api/chat`` speaks plain JSON: tool-call arguments are objects, not
strings, and the vendor does not always assign call ids.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional, Sequence

from fin_query.types import (
    AssistantMessage,
    Message,
    StopReason,
    TokenUsage,
    ToolCall,
    ToolCompletionResponse,
    ToolDefinition,
    ToolMessage,
    UserMessage,
)


class OllamaRequestAdapter:
    """Adapter for converting between the shared format and Ollama's chat API."""

    def build_messages(
        self, system_prompt: str, messages: Sequence[Message]
    ) -> list[dict[str, Any]]:
        ollama_messages: list[dict[str, Any]] = []
        if system_prompt:
            ollama_messages.append({"role": "system", "content": system_prompt})

        for msg in messages:
            if isinstance(msg, UserMessage):
                ollama_messages.append({"role": "user", "content": msg.content})
            elif isinstance(msg, AssistantMessage):
                ollama_msg: dict[str, Any] = {"role": "assistant", "content": msg.content}
                if msg.tool_calls:
                    ollama_msg["tool_calls"] = [
                        {
                            "id": tc.id,
                            "function": {"name": tc.name, "arguments": tc.input},
                        }
                        for tc in msg.tool_calls
                    ]
                ollama_messages.append(ollama_msg)
            elif isinstance(msg, ToolMessage):
                ollama_messages.append({
                    "role": "tool",
                    "tool_name": msg.name,
                    "tool_call_id": msg.tool_call_id,
                    "content": msg.content,
                })

        return ollama_messages

    def build_simple_messages(
        self, system_prompt: str, messages: Sequence[Message]
    ) -> list[dict[str, Any]]:
        ollama_messages: list[dict[str, Any]] = []
        if system_prompt:
            ollama_messages.append({"role": "system", "content": system_prompt})
        ollama_messages.extend(
            {"role": m.role, "content": m.content}
            for m in messages
            if isinstance(m, (UserMessage, AssistantMessage))
        )
        return ollama_messages

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

    def build_body(
        self,
        *,
        model: str,
        messages: list[dict[str, Any]],
        stream: bool,
        max_tokens: Optional[int],
        temperature: Optional[float],
        response_format: Optional[str] = None,
        tools: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"model": model, "messages": messages, "stream": stream}
        options: dict[str, Any] = {}
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        if temperature is not None:
            options["temperature"] = temperature
        if options:
            body["options"] = options
        if response_format == "json":
            body["format"] = "json"
        if tools:
            body["tools"] = tools
        return body

    def map_stop_reason(self, done_reason: Optional[str], has_tool_calls: bool) -> StopReason:
        if has_tool_calls:
            return StopReason.TOOL_USE
        if done_reason == "length":
            return StopReason.MAX_TOKENS
        return StopReason.END_TURN

    def usage_from(self, payload: dict[str, Any]) -> TokenUsage:
        return TokenUsage(
            input_tokens=payload.get("prompt_eval_count") or 0,
            output_tokens=payload.get("eval_count") or 0,
        )

    def tool_response_from_provider(
        self, payload: dict[str, Any], model: str, provider: str
    ) -> ToolCompletionResponse:
        message = payload.get("message") or {}
        tool_calls = [self._tool_call(raw) for raw in message.get("tool_calls") or []]
        return ToolCompletionResponse(
            content=message.get("content") or "",
            tool_calls=tool_calls,
            usage=self.usage_from(payload),
            model=payload.get("model") or model,
            provider=provider,
            stop_reason=self.map_stop_reason(payload.get("done_reason"), bool(tool_calls)),
        )

    def to_messages(self, native: Sequence[dict[str, Any]]) -> list[Message]:
        """Convert Ollama-format messages back to the shared format (system dropped)."""
        messages: list[Message] = []
        pending: list[ToolCall] = []

        for item in native:
            role = item["role"]
            if role == "user":
                messages.append(UserMessage(content=item.get("content") or ""))
            elif role == "assistant":
                calls = [self._tool_call(raw) for raw in item.get("tool_calls") or []]
                pending = list(calls)
                messages.append(
                    AssistantMessage(content=item.get("content") or "", tool_calls=calls)
                )
            elif role == "tool":
                call_id = item.get("tool_call_id")
                if call_id is None and pending:
                    # No id on the wire: results pair with calls in order
                    call_id = pending[0].id
                pending = [tc for tc in pending if tc.id != call_id]
                messages.append(
                    ToolMessage(
                        tool_call_id=call_id or _synthesize_id(),
                        name=item.get("tool_name") or "",
                        content=item.get("content") or "",
                    )
                )

        return messages

    def _tool_call(self, raw: dict[str, Any]) -> ToolCall:
        function = raw.get("function") or {}
        return ToolCall(
            id=raw.get("id") or _synthesize_id(),
            name=function.get("name", ""),
            input=_parse_arguments(function.get("arguments")),
        )


def _parse_arguments(arguments: Any) -> dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments
    if isinstance(arguments, str) and arguments:
        try:
            parsed = json.loads(arguments)
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _synthesize_id() -> str:
    return f"call_{uuid.uuid4().hex[:24]}"
