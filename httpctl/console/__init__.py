"""
This module initializes the console package, exposing command execution,
verbose logging toggling, and help printing.
"""

from .process import execute_command, get_supervisor
from .handler import toggle_verbose_logging, print_help

__all__ = ["execute_command", "get_supervisor", "toggle_verbose_logging", "print_help"]
