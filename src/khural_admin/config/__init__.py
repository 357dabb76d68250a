"""
Config package export.

Keeps import sites clean and stable:
    from khural_admin.config import get_settings, Settings
"""

from __future__ import annotations

from .settings import OverridesBackend, Settings, get_settings

__all__ = ["OverridesBackend", "Settings", "get_settings"]
