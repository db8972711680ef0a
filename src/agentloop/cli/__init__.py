"""
CLI module for agentloop.

Provides the command-line interface using Click.
"""

from agentloop.cli.main import cli, main

__all__ = ["main", "cli"]
