"""
Main entry point for running git-agecrypt as a module.

Usage:
    python -m agecrypt <command> [options]
"""

from .cli import main
import sys

if __name__ == "__main__":
    sys.exit(main())
