"""Core configuration for the presence tracker."""

from .config import (
    BACKEND_DIR,
    STATIC_SESSION_ID,
    TRACKER_SCOPES,
    TrackerSettings,
    get_settings,
)
from .logging import setup_logging

__all__ = [
    "BACKEND_DIR",
    "STATIC_SESSION_ID",
    "TRACKER_SCOPES",
    "TrackerSettings",
    "get_settings",
    "setup_logging",
]
