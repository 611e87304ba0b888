"""Core infrastructure components for the care security backend."""

from .clock import Clock, FixedClock, SystemClock
from .config import Settings, get_settings
from .repository import InMemoryRepository, Repository

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "Settings",
    "get_settings",
    "InMemoryRepository",
    "Repository",
]
