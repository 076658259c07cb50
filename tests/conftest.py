"""
Root pytest configuration and fixtures for agentrelay.

Provides fake agent processes (Python scripts run with the current
interpreter) and a deterministic loop/clock pair for throttle tests.
"""

import stat
import sys
import textwrap
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from agentrelay.adapters import CodexStreamParser  # noqa: E402
from agentrelay.coordinator import RunOptions  # noqa: E402


def agent_script(source: str) -> list[str]:
    """Arguments that make the interpreter run `source` as a fake agent."""
    return ["-c", textwrap.dedent(source)]


@pytest.fixture
def fake_agent():
    """Build RunOptions for a fake codex-protocol agent script."""

    def _make(source: str, **kwargs) -> RunOptions:
        kwargs.setdefault("parser", CodexStreamParser())
        return RunOptions(executable=sys.executable, args=agent_script(source), **kwargs)

    return _make


@pytest.fixture
def agent_executable(tmp_path):
    """Write an executable fake agent that ignores its arguments."""

    def _make(source: str, name: str = "fake-agent") -> str:
        path = tmp_path / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(source))
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return str(path)

    return _make


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeTimer:
    def __init__(self, when: float, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Minimal call_later scheduler driven by a FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback) -> FakeTimer:
        timer = FakeTimer(self.clock.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        self.clock.now += seconds
        for timer in list(self.timers):
            if not timer.cancelled and timer.when <= self.clock.now + 1e-9:
                self.timers.remove(timer)
                timer.callback()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_loop(clock):
    return FakeLoop(clock)
