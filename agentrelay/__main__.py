"""
Entry point for running agentrelay as a module.

Usage:
    python -m agentrelay [args...]
"""

import sys
from .cli import main

if __name__ == "__main__":
    sys.exit(main())
