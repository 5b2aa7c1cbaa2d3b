"""
Utility modules for the practicum scheduling backend.

This package contains shared utilities used across the application:
- logging_config: Structured logging (JSON in production, console otherwise)
"""

from backend.src.utils.logging_config import get_logger, init_logging

__all__ = [
    "get_logger",
    "init_logging",
]
