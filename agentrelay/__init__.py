"""
agentrelay - delegate coding tasks to external CLI agents.

Runs Codex CLI, Gemini CLI or Qwen Code as a subprocess, decodes its JSONL
event stream while it is being written, and reports progress as throttled
RunState snapshots.

Features:
- One generic process coordinator shared by every adapter
- Incremental, chunk-boundary-safe stream parsing
- Bounded run state (invocations, stderr tail)
- Throttled progress callbacks with a guaranteed final emission
- Cooperative cancellation with SIGTERM -> SIGKILL escalation

Example usage:
    # CLI
    $ agentrelay --list
    $ agentrelay --run codex "Add a --dry-run flag to deploy.py"

    # Python API
    from agentrelay import AbortSignal, AdapterRegistry

    registry = AdapterRegistry()
    codex = registry.require("codex")
    state = await codex.run("Fix the failing test", on_update=print)
    print(state.status, state.transcript)
"""

__version__ = "0.1.0"
__author__ = "agentrelay Contributors"

from .events import (
    Event,
    TokenUsage,
    SessionStarted,
    MessageDelta,
    MessageComplete,
    InvocationStarted,
    InvocationResult,
    RunCompleted,
    ErrorEvent,
    RawEvent,
)
from .parser import StreamParser
from .state import RunState, RunStatus, Invocation
from .throttle import UpdateThrottler
from .signals import AbortSignal
from .coordinator import ProcessCoordinator, RunOptions, KillEscalation
from .adapters import (
    AdapterConfig,
    AdapterRegistry,
    AdapterResult,
    BaseAdapter,
    CodexAdapter,
    CodexReadOnlyAdapter,
    GeminiAdapter,
    QwenAdapter,
)
from .config import load_config, validate_config, create_registry, create_coordinator
from .exceptions import (
    AgentRelayError,
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
    AdapterError,
    AdapterNotFoundError,
    InvalidTaskError,
)

__all__ = [
    # Version
    "__version__",
    # Events
    "Event",
    "TokenUsage",
    "SessionStarted",
    "MessageDelta",
    "MessageComplete",
    "InvocationStarted",
    "InvocationResult",
    "RunCompleted",
    "ErrorEvent",
    "RawEvent",
    # Core
    "StreamParser",
    "RunState",
    "RunStatus",
    "Invocation",
    "UpdateThrottler",
    "AbortSignal",
    "ProcessCoordinator",
    "RunOptions",
    "KillEscalation",
    # Adapters
    "AdapterConfig",
    "AdapterRegistry",
    "AdapterResult",
    "BaseAdapter",
    "CodexAdapter",
    "CodexReadOnlyAdapter",
    "GeminiAdapter",
    "QwenAdapter",
    # Config
    "load_config",
    "validate_config",
    "create_registry",
    "create_coordinator",
    # Exceptions
    "AgentRelayError",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "AdapterError",
    "AdapterNotFoundError",
    "InvalidTaskError",
]
