"""
Normalized events decoded from an agent's JSONL output.

Every protocol parser maps one output line to at most one of these
variants. RawEvent is the catch-all for lines that cannot be mapped to a
known structured meaning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

__all__ = [
    "TokenUsage",
    "SessionStarted",
    "MessageDelta",
    "MessageComplete",
    "InvocationStarted",
    "InvocationResult",
    "RunCompleted",
    "ErrorEvent",
    "RawEvent",
    "Event",
]


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting reported by an agent."""

    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None

    @classmethod
    def from_dict(cls, data: Any) -> TokenUsage | None:
        """Build from a `{input_tokens, output_tokens, total_tokens}` mapping."""
        if not isinstance(data, dict):
            return None

        def _int(key: str) -> int | None:
            value = data.get(key)
            # bool is an int subclass
            if isinstance(value, int) and not isinstance(value, bool):
                return value
            return None

        usage = cls(
            input_tokens=_int("input_tokens"),
            output_tokens=_int("output_tokens"),
            total_tokens=_int("total_tokens"),
        )
        if usage.total_tokens is None and (
            usage.input_tokens is not None or usage.output_tokens is not None
        ):
            usage = cls(
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                total_tokens=(usage.input_tokens or 0) + (usage.output_tokens or 0),
            )
        return usage

    def to_dict(self) -> dict[str, int | None]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class SessionStarted:
    """Thread/session identifier announced by the agent."""

    session_id: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class MessageDelta:
    """Streaming assistant text. `text` is always the cumulative message."""

    text: str


@dataclass(frozen=True)
class InvocationStarted:
    """A tool or shell command started (or its input was updated)."""

    id: str
    name: str
    input: Any = None
    command: str | None = None


@dataclass(frozen=True)
class MessageComplete:
    """A complete assistant message, optionally carrying tool calls."""

    text: str
    tool_calls: tuple[InvocationStarted, ...] = ()


@dataclass(frozen=True)
class InvocationResult:
    """A tool or shell command finished.

    `name` and `command` let the coordinator record invocations it never
    saw start.
    """

    id: str
    is_error: bool = False
    exit_code: int | None = None
    output: str | None = None
    name: str | None = None
    command: str | None = None


@dataclass(frozen=True)
class RunCompleted:
    """Turn or run summary."""

    usage: TokenUsage | None = None
    text: str | None = None


@dataclass(frozen=True)
class ErrorEvent:
    """The agent reported a semantic error mid-run."""

    message: str


@dataclass(frozen=True)
class RawEvent:
    """A line that could not be mapped to a structured event."""

    text: str


Event = Union[
    SessionStarted,
    MessageDelta,
    MessageComplete,
    InvocationStarted,
    InvocationResult,
    RunCompleted,
    ErrorEvent,
    RawEvent,
]
