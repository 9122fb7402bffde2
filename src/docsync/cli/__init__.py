"""
DocSync CLI Module.

Provides command-line interface for DocSync operations.
"""

from docsync.cli.main import main, cli

__all__ = ["main", "cli"]
