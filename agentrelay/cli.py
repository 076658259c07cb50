"""
Command-line interface for agentrelay.

Entry point for the agentrelay command.

Usage:
    agentrelay --list                       # List adapters and availability
    agentrelay --run codex "..."            # Delegate a task to an agent
    agentrelay --run gemini "..." --json    # Print the final state as JSON
"""

import argparse
import asyncio
import json
import logging
import signal as signals
import sys
from pathlib import Path

from .compat import get_config_dir, is_windows
from .config import create_registry, load_config
from .exceptions import AgentRelayError
from .signals import AbortSignal
from .state import RunStatus
from .ui import ProgressUI

__all__ = ["main", "create_parser"]


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for agentrelay CLI."""
    parser = argparse.ArgumentParser(
        prog="agentrelay",
        description="agentrelay - delegate tasks to CLI coding agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
    agentrelay --list                   List adapters
    agentrelay --run codex "Add tests for utils.py"
                                        Run codex on a task
    agentrelay --run gemini "Explain main.py" --model gemini-2.5-pro

Config: {get_config_dir()}
""",
    )

    parser.add_argument(
        "--list",
        action="store_true",
        help="List adapters and whether their CLI is installed",
    )
    parser.add_argument(
        "--run",
        nargs=2,
        metavar=("ADAPTER", "TASK"),
        help="Run a task with an adapter",
    )

    # Run options
    parser.add_argument("--cwd", type=Path, help="Working directory for the agent")
    parser.add_argument("--model", help="Model id passed to the agent")
    parser.add_argument("--config", type=Path, help="Path to config.toml")

    # Output options
    parser.add_argument("--json", action="store_true", help="Output final state as JSON")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show invocations while running and enable debug logging",
    )

    return parser


def cmd_list(registry, ui: ProgressUI, as_json: bool) -> int:
    """List registered adapters."""
    adapters = registry.list_all()
    if as_json:
        print(json.dumps(adapters, indent=2))
        return 0
    ui.info("Adapters:")
    ui.adapter_list(adapters)
    return 0


async def _run_with_interrupt(adapter, task: str, cwd: str | None, ui: ProgressUI, **options):
    """Run an adapter, turning SIGINT into an abort request."""
    abort = AbortSignal()
    loop = asyncio.get_running_loop()
    if not is_windows():
        loop.add_signal_handler(signals.SIGINT, abort.abort, "interrupted")
    try:
        return await adapter.run(
            task,
            cwd=cwd,
            signal=abort,
            on_update=ui.run_update,
            **options,
        )
    finally:
        if not is_windows():
            loop.remove_signal_handler(signals.SIGINT)


def cmd_run(args: argparse.Namespace, registry, ui: ProgressUI) -> int:
    """Run a single task and print the result."""
    name, task = args.run
    task = task.strip()
    if not task:
        ui.error("TASK must be a non-empty string")
        return 1

    adapter = registry.require(name)
    if not args.json:
        ui.run_started(adapter.display_name, task)

    cwd = str(args.cwd) if args.cwd else None
    state = asyncio.run(_run_with_interrupt(adapter, task, cwd, ui, model=args.model))

    if args.json:
        print(json.dumps(state.to_dict(), indent=2, default=str))
    else:
        if state.transcript.strip():
            print(state.transcript.strip())
        ui.run_finished(state)

    if state.status is RunStatus.DONE:
        return 0
    return 130 if state.status is RunStatus.ABORTED else 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ui = ProgressUI(verbose=args.verbose, no_color=args.no_color)

    try:
        config = load_config(args.config, required=args.config is not None)
        registry = create_registry(config)

        if args.list:
            return cmd_list(registry, ui, args.json)
        if args.run:
            return cmd_run(args, registry, ui)

        parser.print_help()
        return 0

    except AgentRelayError as e:
        ui.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
