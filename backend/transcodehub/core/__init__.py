"""Core module for configuration and shared infrastructure."""

from transcodehub.core.config import settings

__all__ = [
    "settings",
]
