"""
Qwen Code adapter.

Qwen's partial assistant messages (stop_reason null) resend the whole text
so far, so they map straight to cumulative MessageDelta events.

    system                              -> SessionStarted
    assistant (stop_reason null, text)  -> MessageDelta
    assistant                           -> MessageComplete (+ tool calls)
    user with a tool_result part        -> InvocationResult (first part)
    result                              -> RunCompleted, or ErrorEvent if is_error
    anything else                       -> RawEvent
"""

from __future__ import annotations

import json
from typing import Any

from ..events import (
    ErrorEvent,
    Event,
    InvocationResult,
    InvocationStarted,
    MessageComplete,
    MessageDelta,
    RunCompleted,
    SessionStarted,
    TokenUsage,
)
from ..parser import StreamParser, raw_json
from .base import AdapterConfig
from .stream_json import StreamJsonAdapter


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


class QwenStreamParser(StreamParser):
    """Streaming JSONL parser for `qwen --output-format stream-json`."""

    protocol = "qwen"

    def normalize(self, obj: dict[str, Any]) -> Event | None:
        event_type = obj.get("type")

        if event_type == "system":
            session_id = _str(obj.get("session_id")) or _str(obj.get("thread_id"))
            return SessionStarted(
                session_id=session_id or None,
                model=_str(obj.get("model")) or None,
            )

        if event_type == "assistant":
            return self._normalize_assistant(obj)

        if event_type == "user":
            return self._normalize_user(obj)

        if event_type == "result":
            text = obj.get("result")
            text = text if isinstance(text, str) else None
            if obj.get("is_error") is True:
                return ErrorEvent(message=text or "qwen reported an error")
            return RunCompleted(usage=TokenUsage.from_dict(obj.get("usage")), text=text)

        return raw_json(obj)

    def _normalize_assistant(self, obj: dict[str, Any]) -> Event:
        message = obj.get("message")
        if not isinstance(message, dict):
            return MessageComplete(text="")

        content = message.get("content")
        text_parts: list[str] = []
        tool_calls: list[InvocationStarted] = []
        for part in content if isinstance(content, list) else []:
            if not isinstance(part, dict):
                continue
            if part.get("type") == "text" and isinstance(part.get("text"), str):
                text_parts.append(part["text"])
            elif part.get("type") == "tool_use":
                tool_calls.append(InvocationStarted(
                    id=_str(part.get("id")),
                    name=_str(part.get("name")),
                    input=part.get("input"),
                ))

        text = "".join(text_parts)
        if message.get("stop_reason") is None and text and not tool_calls:
            return MessageDelta(text=text)
        return MessageComplete(text=text, tool_calls=tuple(tool_calls))

    def _normalize_user(self, obj: dict[str, Any]) -> Event:
        message = obj.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        for part in content if isinstance(content, list) else []:
            if isinstance(part, dict) and part.get("type") == "tool_result":
                output = part.get("content")
                if not isinstance(output, str):
                    output = json.dumps(output if output is not None else "")
                return InvocationResult(
                    id=_str(part.get("tool_use_id")),
                    is_error=bool(part.get("is_error")),
                    output=output,
                )
        return raw_json(obj)


class QwenAdapter(StreamJsonAdapter):
    """
    Adapter for Qwen Code.

    Usage:
        adapter = QwenAdapter()
        state = await adapter.run("Add tests for the parser")
    """

    name = "qwen"
    display_name = "Qwen Agent"
    executable = "qwen"

    def __init__(self, config: AdapterConfig | None = None, coordinator=None):
        super().__init__(config or AdapterConfig(command="qwen"), coordinator)

    def create_parser(self) -> QwenStreamParser:
        return QwenStreamParser()
