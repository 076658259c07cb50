"""
Gemini CLI adapter.

Gemini's stream-json deltas carry only the new fragment, so the parser
accumulates them and emits the cumulative text on every MessageDelta.

    init                                -> SessionStarted
    message (assistant, delta)          -> MessageDelta (cumulative)
    message (assistant)                 -> MessageComplete
    tool_use                            -> InvocationStarted (id synthesized if missing)
    tool_result                         -> InvocationResult
    result (status != "error")          -> RunCompleted
    result (status == "error") / error  -> ErrorEvent
    anything else                       -> RawEvent
"""

from __future__ import annotations

import re
from collections import deque
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

STDERR_FILTER_PATTERNS = (
    re.compile(r"YOLO mode is enabled", re.IGNORECASE),
    re.compile(r"All tool calls will be automatically approved", re.IGNORECASE),
    re.compile(r"Loaded cached credentials", re.IGNORECASE),
)


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _error_message(obj: dict[str, Any]) -> str:
    message = obj.get("message")
    if isinstance(message, str) and message:
        return message
    error = obj.get("error")
    if isinstance(error, str) and error:
        return error
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return "Unknown error"


class GeminiStreamParser(StreamParser):
    """Streaming JSONL parser for `gemini --output-format stream-json`."""

    protocol = "gemini"

    def __init__(self):
        super().__init__()
        self._message = ""
        self._tool_count = 0
        # Synthesized ids still waiting for a tool_result, oldest first
        self._unnamed_tools: deque[str] = deque()

    def normalize(self, obj: dict[str, Any]) -> Event | None:
        event_type = obj.get("type")

        if event_type == "init":
            session_id = _str(obj.get("session_id")) or _str(obj.get("thread_id"))
            return SessionStarted(
                session_id=session_id or None,
                model=_str(obj.get("model")) or None,
            )

        if event_type == "message":
            if obj.get("role") != "assistant":
                return raw_json(obj)
            content = _str(obj.get("content"))
            if obj.get("delta") is True:
                self._message += content
                return MessageDelta(text=self._message)
            if content:
                self._message = content
            return MessageComplete(text=content)

        if event_type == "tool_use":
            name = _str(obj.get("tool_name"))
            self._tool_count += 1
            tool_id = _str(obj.get("tool_id"))
            if not tool_id:
                tool_id = f"{name or 'tool'}-{self._tool_count}"
                self._unnamed_tools.append(tool_id)
            return InvocationStarted(id=tool_id, name=name, input=obj.get("parameters"))

        if event_type == "tool_result":
            tool_id = _str(obj.get("tool_id"))
            if not tool_id and self._unnamed_tools:
                tool_id = self._unnamed_tools.popleft()
            output = obj.get("output")
            return InvocationResult(
                id=tool_id,
                is_error=obj.get("status") != "success",
                output=output if isinstance(output, str) else None,
            )

        if event_type == "result":
            if obj.get("status") == "error":
                return ErrorEvent(message=_error_message(obj))
            return RunCompleted(usage=TokenUsage.from_dict(obj.get("stats")))

        if event_type == "error":
            return ErrorEvent(message=_error_message(obj))

        return raw_json(obj)


class GeminiAdapter(StreamJsonAdapter):
    """
    Adapter for Gemini CLI.

    Usage:
        adapter = GeminiAdapter()
        state = await adapter.run("Summarize the architecture", approval_mode="default")
    """

    name = "gemini"
    display_name = "Gemini Agent"
    executable = "gemini"
    stderr_filters = STDERR_FILTER_PATTERNS

    def __init__(self, config: AdapterConfig | None = None, coordinator=None):
        super().__init__(config or AdapterConfig(command="gemini"), coordinator)

    def create_parser(self) -> GeminiStreamParser:
        return GeminiStreamParser()
