"""Shared data models for the chatwatch services."""

from .credentials import TenantCredentials
from .presence import (
    JOIN,
    LEAVE,
    PresenceEvent,
    VisitorProfile,
    VisitorSession,
    session_duration_sec,
)

__all__ = [
    "JOIN",
    "LEAVE",
    "PresenceEvent",
    "TenantCredentials",
    "VisitorProfile",
    "VisitorSession",
    "session_duration_sec",
]
