"""
Codex CLI adapter.

Runs `codex exec --json <task>` and normalizes its JSONL events:

    thread.started                      -> SessionStarted
    turn.started                        -> (none)
    item.started   agent_message        -> MessageDelta
    item.completed agent_message        -> MessageComplete
    item.*         reasoning            -> (none)
    item.started   command_execution    -> InvocationStarted
    item.completed command_execution    -> InvocationResult
    agent_message / command_execution   -> as item.completed (no envelope)
    turn.completed                      -> RunCompleted
    error / turn.failed                 -> ErrorEvent
    anything else                       -> RawEvent
"""

from __future__ import annotations

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
from .base import AdapterConfig, BaseAdapter

FAILED_COMMAND_STATUSES = {"failed", "declined"}
ITEM_TYPES = {"agent_message", "reasoning", "command_execution"}


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


class CodexStreamParser(StreamParser):
    """Streaming JSONL parser for `codex exec --json`."""

    protocol = "codex"

    def normalize(self, obj: dict[str, Any]) -> Event | None:
        event_type = obj.get("type")

        if event_type == "thread.started":
            return SessionStarted(session_id=_str(obj.get("thread_id")) or None)

        if event_type == "turn.started":
            return None

        if event_type in ("item.started", "item.updated", "item.completed"):
            item = obj.get("item")
            if not isinstance(item, dict):
                return raw_json(obj)
            return self._normalize_item(obj, item, completed=event_type == "item.completed")

        # Older releases print items without the item.* envelope
        if event_type in ITEM_TYPES:
            return self._normalize_item(obj, obj, completed=True)

        if event_type == "turn.completed":
            return RunCompleted(usage=TokenUsage.from_dict(obj.get("usage")))

        if event_type == "error":
            message = obj.get("message")
            return ErrorEvent(message=message if isinstance(message, str) else raw_json(obj).text)

        if event_type == "turn.failed":
            error = obj.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            return ErrorEvent(message=message if isinstance(message, str) else "codex turn failed")

        return raw_json(obj)

    def _normalize_item(
        self, obj: dict[str, Any], item: dict[str, Any], completed: bool
    ) -> Event | None:
        item_type = item.get("type")

        if item_type == "agent_message":
            text = _str(item.get("text"))
            return MessageComplete(text=text) if completed else MessageDelta(text=text)

        if item_type == "reasoning":
            return None

        if item_type == "command_execution":
            command = _str(item.get("command"))
            invocation_id = _str(item.get("id")) or command
            if not completed:
                return InvocationStarted(
                    id=invocation_id,
                    name="shell",
                    input={"command": command},
                    command=command,
                )

            exit_code = item.get("exit_code")
            if not isinstance(exit_code, int) or isinstance(exit_code, bool):
                exit_code = None
            status = _str(item.get("status"))
            output = item.get("aggregated_output")
            return InvocationResult(
                id=invocation_id,
                is_error=bool(exit_code) or status in FAILED_COMMAND_STATUSES,
                exit_code=exit_code,
                output=output if isinstance(output, str) else None,
                name="shell",
                command=command,
            )

        return raw_json(obj)


class CodexAdapter(BaseAdapter):
    """
    Adapter for Codex CLI (OpenAI).

    Usage:
        adapter = CodexAdapter()
        state = await adapter.run("Implement a binary search function", sandbox="workspace-write")
    """

    name = "codex"
    display_name = "Codex Agent"
    executable = "codex"
    option_names = ("sandbox", "model", "profile", "full_auto", "add_dir")

    def __init__(self, config: AdapterConfig | None = None, coordinator=None):
        super().__init__(config or AdapterConfig(command="codex"), coordinator)

    def create_parser(self) -> CodexStreamParser:
        return CodexStreamParser()

    def build_args(self, task: str, **kwargs) -> list[str]:
        """Build codex arguments."""
        args = ["exec", "--json", task]

        sandbox = kwargs.get("sandbox")
        if sandbox:
            args.extend(["--sandbox", sandbox])

        model = kwargs.get("model")
        if model:
            args.extend(["-m", model])

        profile = kwargs.get("profile")
        if profile:
            args.extend(["-p", profile])

        if kwargs.get("full_auto") is True:
            args.append("--full-auto")

        add_dirs = kwargs.get("add_dir") or []
        if isinstance(add_dirs, str):
            add_dirs = [add_dirs]
        for directory in add_dirs:
            args.extend(["--add-dir", directory])

        return args


class CodexReadOnlyAdapter(CodexAdapter):
    """Codex with the sandbox hard-coded to read-only (review, planning)."""

    name = "codex-readonly"
    display_name = "Codex Agent (Read-Only)"

    def build_args(self, task: str, **kwargs) -> list[str]:
        kwargs["sandbox"] = "read-only"
        return super().build_args(task, **kwargs)
