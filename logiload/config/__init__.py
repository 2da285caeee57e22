"""
Runtime settings.
"""

from .settings import DatabaseSettings, Settings

__all__ = ["DatabaseSettings", "Settings"]
