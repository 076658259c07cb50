"""
Run state for a single agent process.

Defines the mutable aggregate the coordinator updates while a run is in
progress, and the invocation records it tracks.
"""

from __future__ import annotations

import copy
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .events import TokenUsage

__all__ = [
    "RunStatus",
    "Invocation",
    "RunState",
    "MAX_INVOCATIONS",
    "MAX_STDERR_LINES",
]

MAX_INVOCATIONS = 80
MAX_STDERR_LINES = 20


class RunStatus(Enum):
    """Status of a run."""
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.RUNNING


@dataclass
class Invocation:
    """A tool call or shell command made by the agent."""
    id: str
    name: str
    input: Any = None
    command: str | None = None
    started_at: float = field(default_factory=time.time)
    ended_at: float | None = None
    exit_code: int | None = None
    is_error: bool | None = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def close(
        self,
        is_error: bool = False,
        exit_code: int | None = None,
        now: float | None = None,
    ) -> bool:
        """Close the invocation. Returns False if it was already closed."""
        if not self.is_open:
            return False
        self.ended_at = now if now is not None else time.time()
        self.is_error = is_error
        self.exit_code = exit_code
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "input": self.input,
            "command": self.command,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "exit_code": self.exit_code,
            "is_error": self.is_error,
        }


@dataclass
class RunState:
    """
    Summary of a run so far.

    Owned by the coordinator; callers only ever see snapshots.
    """
    status: RunStatus = RunStatus.RUNNING
    session_id: str | None = None
    model: str | None = None
    transcript: str = ""
    invocations: deque[Invocation] = field(
        default_factory=lambda: deque(maxlen=MAX_INVOCATIONS)
    )
    stderr_tail: deque[str] = field(
        default_factory=lambda: deque(maxlen=MAX_STDERR_LINES)
    )
    raw_tail: deque[str] = field(
        default_factory=lambda: deque(maxlen=MAX_STDERR_LINES)
    )
    error: str | None = None
    usage: TokenUsage | None = None
    exit_code: int | None = None
    started_at: float = field(default_factory=time.time)
    ended_at: float | None = None

    @classmethod
    def create(
        cls,
        max_invocations: int = MAX_INVOCATIONS,
        max_stderr_lines: int = MAX_STDERR_LINES,
        model: str | None = None,
    ) -> RunState:
        """Create a running state with the given caps."""
        return cls(
            model=model,
            invocations=deque(maxlen=max_invocations),
            stderr_tail=deque(maxlen=max_stderr_lines),
            raw_tail=deque(maxlen=max_stderr_lines),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration(self) -> float:
        """Elapsed seconds (up to now while still running)."""
        end = self.ended_at if self.ended_at is not None else time.time()
        return end - self.started_at

    # === Mutation ===

    def set_session_id(self, session_id: str | None) -> None:
        if session_id and not self.session_id:
            self.session_id = session_id

    def set_error(self, message: str) -> None:
        """Record the first error. Ignored once aborted."""
        if self.status is RunStatus.ABORTED or self.error:
            return
        self.error = message

    def find_invocation(self, invocation_id: str) -> Invocation | None:
        for invocation in reversed(self.invocations):
            if invocation.id == invocation_id:
                return invocation
        return None

    def start_invocation(
        self,
        invocation_id: str,
        name: str,
        input: Any = None,
        command: str | None = None,
    ) -> Invocation:
        """Add an invocation, or update the input of a known open one."""
        existing = self.find_invocation(invocation_id)
        if existing is not None and existing.is_open:
            if input is not None:
                existing.input = input
            if command:
                existing.command = command
            return existing

        invocation = Invocation(
            id=invocation_id,
            name=name,
            input=input,
            command=command,
        )
        # deque(maxlen) evicts the oldest entry
        self.invocations.append(invocation)
        return invocation

    def finish(self, status: RunStatus) -> bool:
        """
        Perform the terminal transition.

        Returns:
            True if this call moved the run out of RUNNING
        """
        if not status.is_terminal:
            raise ValueError("finish() requires a terminal status")
        if self.is_terminal:
            return False
        self.status = status
        self.ended_at = time.time()
        if status is RunStatus.ABORTED:
            self.error = None
        return True

    # === Views ===

    def snapshot(self) -> RunState:
        """Copy safe to hand to callers; later mutation is not visible."""
        return RunState(
            status=self.status,
            session_id=self.session_id,
            model=self.model,
            transcript=self.transcript,
            invocations=deque(
                (copy.copy(i) for i in self.invocations),
                maxlen=self.invocations.maxlen,
            ),
            stderr_tail=deque(self.stderr_tail, maxlen=self.stderr_tail.maxlen),
            raw_tail=deque(self.raw_tail, maxlen=self.raw_tail.maxlen),
            error=self.error,
            usage=self.usage,
            exit_code=self.exit_code,
            started_at=self.started_at,
            ended_at=self.ended_at,
        )

    def final_text(self) -> str:
        """Text a host shows as the run's result."""
        return self.transcript.strip() or self.error or "(no output)"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status.value,
            "session_id": self.session_id,
            "model": self.model,
            "transcript": self.transcript,
            "invocations": [i.to_dict() for i in self.invocations],
            "stderr_tail": list(self.stderr_tail),
            "raw_tail": list(self.raw_tail),
            "error": self.error,
            "usage": self.usage.to_dict() if self.usage else None,
            "exit_code": self.exit_code,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration": round(self.duration, 2),
        }
