"""
Configuration module for the practicum scheduling backend.

Provides centralized, environment-driven settings for:
- Database connection and pool sizing
- Notification recording
- CORS origins
"""

from backend.src.config.settings import AppSettings, get_settings

__all__ = [
    "AppSettings",
    "get_settings",
]
