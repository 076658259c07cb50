"""
Adapter registry for managing CLI agent adapters.
"""

from __future__ import annotations

from typing import Any, Type

from ..coordinator import ProcessCoordinator
from ..exceptions import AdapterNotFoundError
from .base import BaseAdapter, AdapterConfig


class AdapterRegistry:
    """
    Registry for CLI agent adapters.

    Instances are constructed and owned by the caller; adapters created by
    a registry share its coordinator.
    """

    def __init__(self, coordinator: ProcessCoordinator | None = None):
        self.coordinator = coordinator or ProcessCoordinator()
        self._adapters: dict[str, Type[BaseAdapter]] = {}
        self._instances: dict[str, BaseAdapter] = {}

        # Auto-register built-in adapters
        self._register_builtins()

    def _register_builtins(self) -> None:
        """Register built-in adapters."""
        from .codex import CodexAdapter, CodexReadOnlyAdapter
        from .gemini import GeminiAdapter
        from .qwen import QwenAdapter

        self.register(CodexAdapter)
        self.register(CodexReadOnlyAdapter)
        self.register(GeminiAdapter)
        self.register(QwenAdapter)

    def register(self, adapter_class: Type[BaseAdapter]) -> None:
        """
        Register an adapter class.

        Args:
            adapter_class: Adapter class to register
        """
        self._adapters[adapter_class.name] = adapter_class
        self._instances.pop(adapter_class.name, None)

    def unregister(self, name: str) -> bool:
        """
        Unregister an adapter.

        Args:
            name: Adapter name

        Returns:
            True if removed
        """
        removed = self._adapters.pop(name, None) is not None
        return self._instances.pop(name, None) is not None or removed

    def names(self) -> list[str]:
        """Registered adapter types plus configured aliases."""
        return list(dict.fromkeys([*self._adapters, *self._instances]))

    def bind(self, name: str, adapter: BaseAdapter) -> None:
        """Make a configured adapter instance available under `name`."""
        self._instances[name] = adapter

    def get(self, name: str, config: AdapterConfig | None = None) -> BaseAdapter | None:
        """
        Get an adapter instance.

        Args:
            name: Adapter name
            config: Optional configuration

        Returns:
            Adapter instance or None
        """
        # Return cached instance if no custom config
        if config is None and name in self._instances:
            return self._instances[name]

        if name not in self._adapters:
            return None

        adapter = self._adapters[name](config, self.coordinator)

        # Cache if using default config
        if config is None:
            self._instances[name] = adapter

        return adapter

    def require(self, name: str, config: AdapterConfig | None = None) -> BaseAdapter:
        """
        Get an adapter instance or raise.

        Raises:
            AdapterNotFoundError: If no adapter is registered under `name`
        """
        adapter = self.get(name, config)
        if adapter is None:
            raise AdapterNotFoundError(name, self.names())
        return adapter

    def get_available(self) -> list[str]:
        """
        Get list of available (installed) adapters.

        Returns:
            Names (types and aliases) whose configured command resolves
        """
        return [name for name in self.names() if self.get(name).is_available()]

    def list_all(self) -> list[dict[str, Any]]:
        """
        List all registered adapters and aliases with availability info.

        Returns:
            List of adapter info dicts
        """
        adapters = []
        for name in self.names():
            adapter = self.get(name)
            adapters.append({
                "name": name,
                "display_name": adapter.display_name,
                "executable": adapter.config.command,
                "available": adapter.is_available(),
            })
        return adapters

    def create_from_config(self, name: str, config: dict[str, Any]) -> BaseAdapter | None:
        """
        Create adapter from an `[adapters.<name>]` config table.

        Args:
            name: Table name; also the adapter type unless `type` is given
            config: Table with optional 'type', 'command', 'env', 'cwd'
                and default option values

        Returns:
            Adapter instance or None
        """
        adapter_type = config.get("type") or name
        adapter_class = self._adapters.get(adapter_type)
        if adapter_class is None:
            return None

        reserved = {"type", "command", "env", "cwd"}
        adapter_config = AdapterConfig(
            command=config.get("command", adapter_class.executable),
            env=dict(config.get("env", {})),
            cwd=config.get("cwd"),
            extra={k: v for k, v in config.items() if k not in reserved},
        )
        return self.get(adapter_type, adapter_config)
