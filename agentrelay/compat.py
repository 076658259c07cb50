"""
Platform helpers for agentrelay.

Covers where the config file lives and what the terminal can render.
Process signals are POSIX-only; callers check is_windows() before
installing signal handlers.
"""

import os
import sys
from pathlib import Path
from typing import TextIO

__all__ = [
    "is_windows",
    "get_config_dir",
    "supports_color",
    "supports_unicode",
    "CONFIG_DIR_ENV",
]

# Overrides the platform config directory
CONFIG_DIR_ENV = "AGENTRELAY_CONFIG_DIR"


def is_windows() -> bool:
    return sys.platform == "win32"


def get_config_dir() -> Path:
    """
    Directory holding config.toml.

    Resolution order: $AGENTRELAY_CONFIG_DIR, then %APPDATA%/agentrelay on
    Windows or $XDG_CONFIG_HOME/agentrelay (default ~/.config/agentrelay).
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()

    if is_windows():
        appdata = os.environ.get("APPDATA")
        root = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        root = Path(xdg) if xdg else Path.home() / ".config"
    return root / "agentrelay"


def supports_color(stream: TextIO | None = None) -> bool:
    """
    Decide whether ANSI escapes should be written to `stream`.

    NO_COLOR (https://no-color.org/) wins over FORCE_COLOR; otherwise the
    stream must be a TTY and TERM must not be "dumb".
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True

    stream = stream or sys.stdout
    isatty = getattr(stream, "isatty", None)
    if isatty is None or not isatty():
        return False

    # Windows 10+ consoles handle ANSI
    return is_windows() or os.environ.get("TERM", "") != "dumb"


def supports_unicode(stream: TextIO | None = None) -> bool:
    """Whether check marks and arrows can be printed to `stream`."""
    encoding = (getattr(stream or sys.stdout, "encoding", None) or "").lower()
    if encoding.replace("-", "") == "utf8":
        return True

    lang = os.environ.get("LANG", "").lower()
    return "utf-8" in lang or "utf8" in lang or bool(os.environ.get("WT_SESSION"))
