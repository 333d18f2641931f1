"""Configuration module."""

from config.settings import settings, Settings, SiteSettings, AlertSettings, LogFormat

__all__ = [
    "settings",
    "Settings",
    "SiteSettings",
    "AlertSettings",
    "LogFormat",
]
