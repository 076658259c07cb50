"""
Terminal progress output for the agentrelay CLI.

Provides:
- ANSI color support with graceful fallback
- One line per new invocation while a run is in progress
- A final status line
"""

import sys
from dataclasses import dataclass
from typing import Any, TextIO

from .compat import supports_color, supports_unicode
from .state import Invocation, RunState, RunStatus

__all__ = [
    "ProgressUI",
    "Colors",
    "Symbols",
]


@dataclass
class Colors:
    """ANSI color codes with graceful fallback."""

    RED: str = "\033[31m"
    GREEN: str = "\033[32m"
    YELLOW: str = "\033[33m"
    CYAN: str = "\033[36m"
    GRAY: str = "\033[90m"

    BOLD: str = "\033[1m"
    RESET: str = "\033[0m"

    @classmethod
    def disabled(cls) -> "Colors":
        """Return Colors instance with all codes empty (no colors)."""
        return cls(RED="", GREEN="", YELLOW="", CYAN="", GRAY="", BOLD="", RESET="")


@dataclass
class Symbols:
    """Unicode/ASCII symbols for progress indicators."""

    CHECK: str = "✓"
    CROSS: str = "✗"
    STOP: str = "■"
    ARROW: str = "→"

    @classmethod
    def ascii(cls) -> "Symbols":
        """Return ASCII-only symbols for limited terminals."""
        return cls(CHECK="[OK]", CROSS="[X]", STOP="[-]", ARROW="->")


class ProgressUI:
    """
    Progress display for agent runs.

    `run_update` is meant to be passed as a run's progress callback.
    """

    def __init__(
        self,
        verbose: bool = False,
        no_color: bool = False,
        stream: TextIO | None = None,
    ):
        """
        Initialize progress UI.

        Args:
            verbose: Print each new invocation while running
            no_color: Disable colors even if terminal supports them
            stream: Output stream (defaults to stderr)
        """
        self.verbose = verbose
        self.stream = stream or sys.stderr

        use_color = supports_color(self.stream) and not no_color
        self.colors = Colors() if use_color else Colors.disabled()
        self.symbols = Symbols() if supports_unicode(self.stream) else Symbols.ascii()

        self._seen: set[tuple[str, float]] = set()

    def _write(self, text: str) -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def _describe(self, invocation: Invocation) -> str:
        if invocation.command:
            return f"{invocation.name}: {invocation.command[:60]}"
        return invocation.name or invocation.id

    # === Run-level methods ===

    def run_started(self, adapter: str, task: str) -> None:
        c = self.colors
        self._write(f"{c.BOLD}{adapter}{c.RESET} {c.GRAY}{task[:70]}{c.RESET}")

    def run_update(self, state: RunState) -> None:
        """Progress callback: print invocations not shown yet."""
        if not self.verbose:
            return
        c = self.colors
        for invocation in state.invocations:
            key = (invocation.id, invocation.started_at)
            if key in self._seen:
                continue
            self._seen.add(key)
            self._write(f"  {c.CYAN}{self.symbols.ARROW}{c.RESET} {self._describe(invocation)}")

    def run_finished(self, state: RunState) -> None:
        c = self.colors
        s = self.symbols
        duration = f"{c.GRAY}({state.duration:.1f}s){c.RESET}"

        if state.status is RunStatus.DONE:
            self._write(f"{c.GREEN}{s.CHECK} done{c.RESET} {duration}")
        elif state.status is RunStatus.ABORTED:
            self._write(f"{c.YELLOW}{s.STOP} aborted{c.RESET} {duration}")
        else:
            self._write(f"{c.RED}{s.CROSS} {state.error or 'error'}{c.RESET} {duration}")
            for line in state.stderr_tail:
                self._write(f"  {c.GRAY}{line}{c.RESET}")

    def adapter_list(self, adapters: list[dict[str, Any]]) -> None:
        c = self.colors
        s = self.symbols
        for info in adapters:
            mark = f"{c.GREEN}{s.CHECK}{c.RESET}" if info["available"] else f"{c.RED}{s.CROSS}{c.RESET}"
            self._write(f"  [{mark}] {info['name']:<16} {info['display_name']} ({info['executable']})")

    # === General output ===

    def info(self, message: str) -> None:
        c = self.colors
        self._write(f"{c.CYAN}{message}{c.RESET}")

    def error(self, message: str) -> None:
        c = self.colors
        s = self.symbols
        self._write(f"{c.RED}{s.CROSS} {message}{c.RESET}")
