"""
Local package for httpctl.

Provides the merged application configuration through the
`effective_settings` singleton.
"""

from .config import MergedSettings, effective_settings

__all__ = ["MergedSettings", "effective_settings"]
