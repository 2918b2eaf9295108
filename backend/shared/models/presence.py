"""Data models for presence events, visitor sessions, and visitor profiles.

Timestamps are epoch milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass

JOIN = "join"
LEAVE = "leave"


@dataclass(frozen=True)
class PresenceEvent:
    """Append-only join/leave record."""

    username: str
    event_type: str
    ts: int
    channel_login: str
    id: int | None = None


@dataclass
class VisitorSession:
    """One visit of a user to a channel. Open while ``left_at`` is None."""

    username: str
    channel_login: str
    joined_at: int
    left_at: int | None = None
    duration_sec: int | None = None
    id: int | None = None

    @property
    def is_open(self) -> bool:
        return self.left_at is None


@dataclass
class VisitorProfile:
    """Lazily enriched profile metadata, keyed by lowercase username."""

    username: str
    user_id: str | None = None
    display_name: str | None = None
    broadcaster_type: str | None = None
    follower_count: int | None = None
    profile_image_url: str | None = None
    updated_at: int | None = None


def session_duration_sec(joined_at: int, left_at: int) -> int:
    """Whole seconds between join and leave, never negative."""
    return max(0, (left_at - joined_at) // 1000)
