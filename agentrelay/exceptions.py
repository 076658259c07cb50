"""
Custom exceptions for agentrelay.

All agentrelay-specific errors inherit from AgentRelayError.

Expected run failures (spawn errors, non-zero exits, cancellation) are
never raised; they are reported through RunState.status and RunState.error.
"""

__all__ = [
    "AgentRelayError",
    # Config errors
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    # Adapter errors
    "AdapterError",
    "AdapterNotFoundError",
    "InvalidTaskError",
]


class AgentRelayError(Exception):
    """Base exception for all agentrelay errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\n  Details: {self.details}"
        return self.message


# Configuration Errors

class ConfigError(AgentRelayError):
    """Base class for configuration errors."""
    pass


class ConfigNotFoundError(ConfigError):
    """Raised when config file is not found."""

    def __init__(self, path: str):
        super().__init__(
            f"Configuration file not found: {path}",
            details="Create it or run without a config file to use defaults"
        )
        self.path = path


class ConfigValidationError(ConfigError):
    """Raised when config validation fails."""

    def __init__(self, message: str, field: str | None = None):
        details = f"Field: {field}" if field else None
        super().__init__(f"Configuration validation error: {message}", details)
        self.field = field


# Adapter Errors

class AdapterError(AgentRelayError):
    """Base class for adapter errors."""
    pass


class AdapterNotFoundError(AdapterError):
    """Raised when an unknown adapter is requested."""

    def __init__(self, name: str, available: list[str]):
        super().__init__(
            f"Unknown adapter: '{name}'",
            details=f"Available adapters: {', '.join(available)}"
        )
        self.name = name
        self.available = available


class InvalidTaskError(AdapterError):
    """Raised when a task payload is empty or not a string."""

    def __init__(self, adapter: str):
        super().__init__(
            f"Invalid parameters for '{adapter}': `task` must be a non-empty string."
        )
        self.adapter = adapter
