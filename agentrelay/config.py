"""
Configuration loading and validation for agentrelay.

Handles:
- TOML config file loading
- Configuration validation
- Runner defaults (throttle interval, kill grace period, caps)
- Building a coordinator and registry from config
"""

import tomllib
from pathlib import Path
from typing import Any

from .adapters import AdapterRegistry
from .compat import get_config_dir
from .coordinator import KILL_GRACE_S, ProcessCoordinator
from .exceptions import ConfigNotFoundError, ConfigValidationError
from .state import MAX_INVOCATIONS, MAX_STDERR_LINES
from .throttle import THROTTLE_MS

__all__ = [
    "load_config",
    "validate_config",
    "get_config_path",
    "get_runner_config",
    "create_coordinator",
    "create_registry",
    "RUNNER_DEFAULTS",
]

RUNNER_DEFAULTS: dict[str, Any] = {
    "throttle_ms": THROTTLE_MS,
    "kill_grace_s": KILL_GRACE_S,
    "max_invocations": MAX_INVOCATIONS,
    "max_stderr_lines": MAX_STDERR_LINES,
}


def get_config_path() -> Path:
    """Get path to config.toml file."""
    return get_config_dir() / "config.toml"


def load_config(config_path: Path | None = None, required: bool = False) -> dict[str, Any]:
    """
    Load and validate configuration from TOML file.

    Args:
        config_path: Optional custom config path. Uses default if not provided.
        required: Raise if the file is missing instead of returning {}

    Returns:
        Parsed configuration dictionary

    Raises:
        ConfigNotFoundError: If config file doesn't exist and is required
        ConfigValidationError: If config is invalid
    """
    path = config_path or get_config_path()

    if not path.exists():
        if required:
            raise ConfigNotFoundError(str(path))
        return {}

    with open(path, "rb") as f:
        try:
            config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigValidationError(f"Invalid TOML in {path}: {e}") from e

    validate_config(config)
    return config


def validate_config(config: dict[str, Any]) -> None:
    """
    Validate configuration structure.

    Args:
        config: Configuration dictionary to validate

    Raises:
        ConfigValidationError: If validation fails
    """
    if "runner" in config:
        _validate_runner_config(config["runner"])

    adapters = config.get("adapters", {})
    if not isinstance(adapters, dict):
        raise ConfigValidationError("adapters must be a table", field="adapters")

    for name, adapter_config in adapters.items():
        if not isinstance(adapter_config, dict):
            raise ConfigValidationError(
                f"Adapter '{name}' must be a table",
                field=f"adapters.{name}"
            )
        command = adapter_config.get("command")
        if command is not None and (not isinstance(command, str) or not command):
            raise ConfigValidationError(
                f"Adapter '{name}' command must be a non-empty string",
                field=f"adapters.{name}.command"
            )
        env = adapter_config.get("env", {})
        if not isinstance(env, dict) or not all(isinstance(v, str) for v in env.values()):
            raise ConfigValidationError(
                f"Adapter '{name}' env must be a table of strings",
                field=f"adapters.{name}.env"
            )


def _validate_runner_config(runner_config: Any) -> None:
    """Validate runner configuration section."""
    if not isinstance(runner_config, dict):
        raise ConfigValidationError("runner must be a table", field="runner")

    for key in ("throttle_ms", "kill_grace_s"):
        if key in runner_config:
            value = runner_config[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ConfigValidationError(
                    f"runner.{key} must be a non-negative number",
                    field=f"runner.{key}"
                )

    for key in ("max_invocations", "max_stderr_lines"):
        if key in runner_config:
            value = runner_config[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigValidationError(
                    f"runner.{key} must be a positive integer",
                    field=f"runner.{key}"
                )


def get_runner_config(config: dict[str, Any]) -> dict[str, Any]:
    """
    Get runner configuration with defaults.

    Args:
        config: Full configuration dictionary

    Returns:
        Runner configuration with defaults applied
    """
    return {**RUNNER_DEFAULTS, **config.get("runner", {})}


def create_coordinator(config: dict[str, Any]) -> ProcessCoordinator:
    """Build a ProcessCoordinator from the [runner] section."""
    runner = get_runner_config(config)
    return ProcessCoordinator(
        throttle_ms=runner["throttle_ms"],
        kill_grace_s=runner["kill_grace_s"],
        max_invocations=runner["max_invocations"],
        max_stderr_lines=runner["max_stderr_lines"],
    )


def create_registry(config: dict[str, Any]) -> AdapterRegistry:
    """
    Build an AdapterRegistry, applying [adapters.<name>] overrides.

    Args:
        config: Full configuration dictionary

    Returns:
        Registry whose cached adapters reflect the config

    Raises:
        ConfigValidationError: If a table names an unknown adapter type
    """
    registry = AdapterRegistry(create_coordinator(config))

    for name, adapter_config in config.get("adapters", {}).items():
        adapter = registry.create_from_config(name, adapter_config)
        if adapter is None:
            raise ConfigValidationError(
                f"Unknown adapter type '{adapter_config.get('type') or name}'",
                field=f"adapters.{name}.type"
            )
        registry.bind(name, adapter)

    return registry
