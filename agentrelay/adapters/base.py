"""
Base adapter class for CLI agent integrations.
"""

from __future__ import annotations

import logging
import re
import shlex
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from ..coordinator import ProcessCoordinator, RunOptions
from ..exceptions import InvalidTaskError
from ..parser import StreamParser
from ..signals import AbortSignal
from ..state import RunState, RunStatus

log = logging.getLogger("agentrelay.adapters")

MODEL_ID_PATTERN = re.compile(r"^[a-zA-Z0-9._:/-]+$")


@dataclass
class AdapterConfig:
    """Configuration for an adapter."""

    command: str  # CLI executable (e.g., "codex", "gemini")
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None

    # Default option values (model, sandbox, approval_mode, ...)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class AdapterResult:
    """Result of a delegated task, shaped for a host tool call."""

    success: bool
    output: str = ""
    error: str | None = None
    status: str = RunStatus.DONE.value
    exit_code: int | None = None
    duration_ms: int = 0

    # Metadata
    adapter: str = ""
    command_run: str = ""
    state: RunState | None = None

    @classmethod
    def from_state(cls, adapter: str, command: list[str], state: RunState) -> AdapterResult:
        return cls(
            success=state.status is RunStatus.DONE,
            output=state.final_text(),
            error=state.error,
            status=state.status.value,
            exit_code=state.exit_code,
            duration_ms=int(state.duration * 1000),
            adapter=adapter,
            command_run=shlex.join(command),
            state=state,
        )

    @property
    def is_error(self) -> bool:
        return self.status == RunStatus.ERROR.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "status": self.status,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
            "adapter": self.adapter,
            "command_run": self.command_run,
            "details": self.state.to_dict() if self.state else None,
        }


class BaseAdapter(ABC):
    """
    Base class for CLI agent adapters.

    Subclass and implement:
    - name: Adapter identifier
    - build_args(): Build the argument vector (without the executable)
    - create_parser(): Create a fresh stream parser for one run
    """

    name: str = "base"
    display_name: str = "Base Adapter"
    executable: str = "base"

    # Known stderr noise, dropped before it reaches the stderr tail
    stderr_filters: tuple[re.Pattern[str], ...] = ()

    # Task parameters forwarded to build_args() by execute()
    option_names: tuple[str, ...] = ()

    def __init__(
        self,
        config: AdapterConfig | None = None,
        coordinator: ProcessCoordinator | None = None,
    ):
        self.config = config or AdapterConfig(command=self.executable)
        self.coordinator = coordinator or ProcessCoordinator()

    def is_available(self) -> bool:
        """Check if the configured command resolves to an executable."""
        return shutil.which(self.config.command) is not None

    @abstractmethod
    def build_args(self, task: str, **options: Any) -> list[str]:
        """
        Build the argument vector.

        Args:
            task: Task text passed to the agent
            **options: Adapter-specific flags

        Returns:
            Arguments in the form `<fixed flags> <task> [optional flags...]`
        """
        pass

    @abstractmethod
    def create_parser(self) -> StreamParser:
        """Create a parser for this agent's output protocol."""
        pass

    def build_command(self, task: str, **options: Any) -> list[str]:
        """Build the full command, executable first."""
        return [self.config.command, *self.build_args(task, **options)]

    def resolve_options(self, **options: Any) -> dict[str, Any]:
        """Merge configured defaults with per-call options (None = unset)."""
        merged = {k: v for k, v in self.config.extra.items() if k in self.option_names}
        merged.update({k: v for k, v in options.items() if v is not None})
        return merged

    async def run(
        self,
        task: str,
        cwd: str | None = None,
        signal: AbortSignal | None = None,
        on_update: Callable[[RunState], Any] | None = None,
        **options: Any,
    ) -> RunState:
        """
        Run the agent on a task.

        Args:
            task: Task text
            cwd: Working directory
            signal: Optional cancellation signal
            on_update: Optional progress callback receiving state snapshots
            **options: Adapter-specific flags

        Returns:
            Terminal run state
        """
        resolved = self.resolve_options(**options)
        args = self.build_args(task, **resolved)
        log.info(f"{self.display_name}: {task[:50]}...")

        return await self.coordinator.run(
            RunOptions(
                executable=self.config.command,
                args=args,
                parser=self.create_parser(),
                cwd=cwd or self.config.cwd,
                env=self.config.env,
                signal=signal,
                on_update=on_update,
                stderr_filters=self.stderr_filters,
                model=resolved.get("model"),
            )
        )

    async def execute(
        self,
        params: dict[str, Any],
        signal: AbortSignal | None = None,
        on_update: Callable[[RunState], Any] | None = None,
    ) -> AdapterResult:
        """
        Run a task from host tool-call parameters.

        Args:
            params: Tool parameters; `task` is required, `cwd` optional,
                plus any of `option_names`
            signal: Optional cancellation signal
            on_update: Optional progress callback

        Returns:
            Adapter result (an invalid task yields an error result without
            spawning anything)
        """
        task = params.get("task")
        task = task.strip() if isinstance(task, str) else ""
        if not task:
            error = InvalidTaskError(self.name)
            return AdapterResult(
                success=False,
                output=error.message,
                error=error.message,
                status=RunStatus.ERROR.value,
                adapter=self.name,
            )

        options = {k: params[k] for k in self.option_names if k in params}
        cwd = params.get("cwd") if isinstance(params.get("cwd"), str) else None
        command = self.build_command(task, **self.resolve_options(**options))

        state = await self.run(task, cwd=cwd, signal=signal, on_update=on_update, **options)
        return AdapterResult.from_state(self.name, command, state)


def valid_model_id(model: Any) -> str | None:
    """Return the model id if it is safe to pass as a flag, else None."""
    if not model:
        return None
    if isinstance(model, str) and MODEL_ID_PATTERN.match(model):
        return model
    log.warning(f"Invalid model ID {model!r}, falling back to default")
    return None
