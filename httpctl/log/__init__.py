"""
Logging module for the application.
This module provides functionality to set up console and file logging.
"""

from .setup import setup_logging, get_console_handler

__all__ = ["setup_logging", "get_console_handler"]
