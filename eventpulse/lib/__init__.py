"""Core library modules for EventPulse."""

from eventpulse.lib.config import Settings, get_settings
from eventpulse.lib.logging import get_logger

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
]
