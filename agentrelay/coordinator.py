"""
Process coordinator for external agent runs.

Handles:
- Spawning the agent with stdout/stderr pipes and no stdin
- Incremental decoding of stdout through a protocol parser
- A bounded, noise-filtered stderr tail
- Throttled progress callbacks with forced emission at start, abort and end
- Cooperative cancellation with SIGTERM -> SIGKILL escalation
- Exactly one terminal RunState per run, whatever way the run ends
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from .events import (
    ErrorEvent,
    Event,
    InvocationResult,
    InvocationStarted,
    MessageComplete,
    MessageDelta,
    RawEvent,
    RunCompleted,
    SessionStarted,
)
from .parser import StreamParser
from .signals import AbortSignal
from .state import MAX_INVOCATIONS, MAX_STDERR_LINES, RunState, RunStatus
from .throttle import THROTTLE_MS, UpdateThrottler

__all__ = [
    "ProcessCoordinator",
    "RunOptions",
    "KillEscalation",
    "LineBuffer",
    "KILL_GRACE_S",
]

log = logging.getLogger("agentrelay.coordinator")

KILL_GRACE_S = 2.0
READ_CHUNK_SIZE = 64 * 1024


@dataclass
class RunOptions:
    """Everything needed to run one agent process."""

    executable: str
    args: list[str]
    parser: StreamParser
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    signal: AbortSignal | None = None
    on_update: Callable[[RunState], Any] | None = None
    stderr_filters: Sequence[re.Pattern[str]] = ()
    model: str | None = None


class LineBuffer:
    """Splits a text stream into complete lines, keeping the remainder."""

    def __init__(self):
        self._buffer = ""

    def feed(self, chunk: str) -> list[str]:
        self._buffer += chunk
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return [line.rstrip("\r") for line in lines if line.strip()]

    def flush(self) -> list[str]:
        rest = self._buffer.strip()
        self._buffer = ""
        return [rest] if rest else []


class KillEscalation:
    """
    Two-phase termination: SIGTERM now, SIGKILL after a grace period.

    Acquired when a run is aborted and released (timer cancelled) on
    every exit path.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        grace_s: float = KILL_GRACE_S,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.process = process
        self.grace_s = grace_s
        self._loop = loop
        self._timer: asyncio.TimerHandle | None = None
        self.started = False
        self.forced = False

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Send SIGTERM and arm the SIGKILL timer (once per run)."""
        if self.started:
            return
        self.started = True
        if self.process.returncode is not None:
            return

        self._send(self.process.terminate)
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self.grace_s, self._force_kill)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _force_kill(self) -> None:
        self._timer = None
        if self.process.returncode is not None:
            return
        log.warning(
            f"Process {self.process.pid} ignored SIGTERM for {self.grace_s}s, killing"
        )
        self.forced = True
        self._send(self.process.kill)

    def _send(self, action: Callable[[], None]) -> None:
        try:
            action()
        except ProcessLookupError:
            # Exited between the returncode check and the signal
            log.debug(f"Process {self.process.pid} already gone")


class ProcessCoordinator:
    """
    Runs one external agent process to a single terminal RunState.

    Usage:
        coordinator = ProcessCoordinator()
        state = await coordinator.run(RunOptions(
            executable="codex",
            args=["exec", "--json", "Add type hints"],
            parser=CodexStreamParser(),
        ))
    """

    def __init__(
        self,
        throttle_ms: float = THROTTLE_MS,
        kill_grace_s: float = KILL_GRACE_S,
        max_invocations: int = MAX_INVOCATIONS,
        max_stderr_lines: int = MAX_STDERR_LINES,
    ):
        """
        Initialize coordinator.

        Args:
            throttle_ms: Minimum spacing between progress callbacks
            kill_grace_s: Seconds between SIGTERM and SIGKILL on abort
            max_invocations: Cap on retained invocation records
            max_stderr_lines: Cap on retained stderr/raw lines
        """
        self.throttle_ms = throttle_ms
        self.kill_grace_s = kill_grace_s
        self.max_invocations = max_invocations
        self.max_stderr_lines = max_stderr_lines

        self._handlers: dict[type, Callable[[Any, RunState], None]] = {
            SessionStarted: self._on_session_started,
            MessageDelta: self._on_message_delta,
            MessageComplete: self._on_message_complete,
            InvocationStarted: self._on_invocation_started,
            InvocationResult: self._on_invocation_result,
            RunCompleted: self._on_run_completed,
            ErrorEvent: self._on_error,
            RawEvent: self._on_raw,
        }

    async def run(self, options: RunOptions) -> RunState:
        """
        Run the process described by `options`.

        Expected failures (spawn error, non-zero exit, abort) are reported
        through the returned state, never raised.

        Args:
            options: Executable, arguments, parser and callbacks

        Returns:
            Terminal RunState
        """
        loop = asyncio.get_running_loop()
        state = RunState.create(
            max_invocations=self.max_invocations,
            max_stderr_lines=self.max_stderr_lines,
            model=options.model,
        )
        throttler = UpdateThrottler(
            state.snapshot, options.on_update, self.throttle_ms, loop=loop
        )
        signal = options.signal

        if signal is not None and signal.aborted:
            log.info(f"{options.executable}: aborted before spawn")
            state.finish(RunStatus.ABORTED)
            throttler.force_notify()
            throttler.close()
            return state

        try:
            process = await asyncio.create_subprocess_exec(
                options.executable,
                *options.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=options.cwd or os.getcwd(),
                env={**os.environ, **options.env} if options.env else None,
            )
        except OSError as e:
            log.warning(f"{options.executable}: failed to start: {e}")
            state.set_error(str(e) or type(e).__name__)
            state.finish(RunStatus.ERROR)
            throttler.force_notify()
            throttler.close()
            return state

        log.debug(f"{options.executable}: started pid {process.pid}")
        escalation = KillEscalation(process, self.kill_grace_s, loop=loop)

        def handle_abort() -> None:
            if not state.finish(RunStatus.ABORTED):
                return
            log.info(f"{options.executable}: aborting pid {process.pid}")
            throttler.force_notify()
            escalation.start()

        def on_abort(_reason: Any) -> None:
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                handle_abort()
            else:
                loop.call_soon_threadsafe(handle_abort)

        if signal is not None:
            signal.add_listener(on_abort)

        readers: list[asyncio.Task] = []
        try:
            throttler.force_notify()
            if signal is not None and signal.aborted:
                handle_abort()

            stderr_lines = LineBuffer()
            readers = [
                asyncio.create_task(
                    self._pump_stdout(process.stdout, options.parser, state, throttler)
                ),
                asyncio.create_task(
                    self._pump_stderr(
                        process.stderr, stderr_lines, options.stderr_filters,
                        state, throttler,
                    )
                ),
            ]
            await asyncio.gather(*readers)
            returncode = await process.wait()

            self._apply(options.parser.flush(), state)
            self._append_stderr(stderr_lines.flush(), options.stderr_filters, state)
            escalation.cancel()

            state.exit_code = returncode
            if state.status is RunStatus.ABORTED:
                pass
            elif returncode != 0:
                state.set_error(self._exit_message(options.executable, returncode))
                state.finish(RunStatus.ERROR)
            else:
                state.finish(RunStatus.DONE)

            log.info(
                f"{options.executable}: {state.status.value} "
                f"(exit {returncode}, {state.duration:.1f}s)"
            )
            throttler.force_notify()
            return state

        except BaseException:
            for reader in readers:
                reader.cancel()
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
            raise

        finally:
            if signal is not None:
                signal.remove_listener(on_abort)
            escalation.cancel()
            throttler.close()

    # === Stream pumps ===

    async def _pump_stdout(
        self,
        stream: asyncio.StreamReader,
        parser: StreamParser,
        state: RunState,
        throttler: UpdateThrottler,
    ) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            text = decoder.decode(chunk, final=not chunk)
            events = parser.feed(text)
            if events:
                self._apply(events, state)
                throttler.notify()
            if not chunk:
                return

    async def _pump_stderr(
        self,
        stream: asyncio.StreamReader,
        lines: LineBuffer,
        filters: Sequence[re.Pattern[str]],
        state: RunState,
        throttler: UpdateThrottler,
    ) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            text = decoder.decode(chunk, final=not chunk)
            if self._append_stderr(lines.feed(text), filters, state):
                throttler.notify()
            if not chunk:
                return

    def _append_stderr(
        self,
        lines: list[str],
        filters: Sequence[re.Pattern[str]],
        state: RunState,
    ) -> bool:
        kept = [
            line for line in lines
            if not any(pattern.search(line) for pattern in filters)
        ]
        state.stderr_tail.extend(kept)
        return bool(kept)

    @staticmethod
    def _exit_message(executable: str, returncode: int) -> str:
        name = os.path.basename(executable)
        if returncode < 0:
            return f"{name} terminated by signal {-returncode}"
        return f"{name} exited with code {returncode}"

    # === Event handling ===

    def _apply(self, events: list[Event], state: RunState) -> None:
        for event in events:
            self._handlers[type(event)](event, state)

    def _on_session_started(self, event: SessionStarted, state: RunState) -> None:
        state.set_session_id(event.session_id)
        if event.model and not state.model:
            state.model = event.model

    def _on_message_delta(self, event: MessageDelta, state: RunState) -> None:
        state.transcript = event.text

    def _on_message_complete(self, event: MessageComplete, state: RunState) -> None:
        if event.text:
            state.transcript = event.text
        for call in event.tool_calls:
            self._on_invocation_started(call, state)

    def _on_invocation_started(self, event: InvocationStarted, state: RunState) -> None:
        state.start_invocation(event.id, event.name, event.input, event.command)

    def _on_invocation_result(self, event: InvocationResult, state: RunState) -> None:
        invocation = state.find_invocation(event.id)
        if invocation is None:
            if not (event.name or event.command):
                log.debug(f"Result for unknown invocation {event.id!r}")
                return
            invocation = state.start_invocation(
                event.id, event.name or "shell", command=event.command
            )
        invocation.close(is_error=event.is_error, exit_code=event.exit_code)

    def _on_run_completed(self, event: RunCompleted, state: RunState) -> None:
        if event.usage is not None:
            state.usage = event.usage
        if event.text:
            state.transcript = event.text

    def _on_error(self, event: ErrorEvent, state: RunState) -> None:
        state.set_error(event.message)

    def _on_raw(self, event: RawEvent, state: RunState) -> None:
        state.raw_tail.append(event.text)
