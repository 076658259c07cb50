"""
CLI adapters for external AI coding agents.

Adapters run an external CLI as a subprocess and decode its JSONL stream:
- Codex CLI (codex, codex-readonly)
- Gemini CLI (gemini)
- Qwen Code (qwen)
"""

from .base import BaseAdapter, AdapterConfig, AdapterResult
from .codex import CodexAdapter, CodexReadOnlyAdapter, CodexStreamParser
from .gemini import GeminiAdapter, GeminiStreamParser
from .qwen import QwenAdapter, QwenStreamParser
from .registry import AdapterRegistry

__all__ = [
    "BaseAdapter",
    "AdapterConfig",
    "AdapterResult",
    "AdapterRegistry",
    "CodexAdapter",
    "CodexReadOnlyAdapter",
    "CodexStreamParser",
    "GeminiAdapter",
    "GeminiStreamParser",
    "QwenAdapter",
    "QwenStreamParser",
]
