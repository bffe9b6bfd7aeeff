"""
Core module containing configuration, security, errors, and utilities.
"""

from .config import settings, get_settings

__all__ = ["settings", "get_settings"]
