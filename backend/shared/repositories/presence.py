"""Repository for presence_events, visitor_sessions, and visitor_profiles tables."""

from __future__ import annotations

import logging

import asyncpg

from shared.models.presence import (
    JOIN,
    LEAVE,
    PresenceEvent,
    VisitorProfile,
    VisitorSession,
    session_duration_sec,
)

logger = logging.getLogger(__name__)

_SESSION_COLUMNS = "id, username, channel_login, joined_at, left_at, duration_sec"


class PresenceRepository:
    """SQL operations behind the presence tracker.

    Write side (used by the reconciliation loop and the enrichment queue):
    ``event_join``, ``event_leave``, ``get_open_set``, ``save_user_profile``.
    Everything else is read-only and serves the dashboard API.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Write Path ====================

    async def event_join(self, username: str, ts: int, channel_login: str) -> None:
        """Append a join event and open a new session."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO presence_events (username, event_type, ts, channel_login)
                    VALUES ($1, $2, $3, $4)
                    """,
                    username,
                    JOIN,
                    ts,
                    channel_login,
                )
                await conn.execute(
                    """
                    INSERT INTO visitor_sessions (username, channel_login, joined_at)
                    VALUES ($1, $2, $3)
                    """,
                    username,
                    channel_login,
                    ts,
                )

    async def event_leave(self, username: str, ts: int, channel_login: str) -> None:
        """Append a leave event and close the most recently opened open session."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO presence_events (username, event_type, ts, channel_login)
                    VALUES ($1, $2, $3, $4)
                    """,
                    username,
                    LEAVE,
                    ts,
                    channel_login,
                )
                row = await conn.fetchrow(
                    """
                    SELECT id, joined_at FROM visitor_sessions
                    WHERE channel_login = $1 AND username = $2 AND left_at IS NULL
                    ORDER BY joined_at DESC, id DESC
                    LIMIT 1
                    FOR UPDATE
                    """,
                    channel_login,
                    username,
                )
                if row is None:
                    logger.debug(f"No open session to close for {username}#{channel_login}")
                    return
                await conn.execute(
                    "UPDATE visitor_sessions SET left_at = $1, duration_sec = $2 WHERE id = $3",
                    ts,
                    session_duration_sec(row["joined_at"], ts),
                    row["id"],
                )

    async def get_open_set(self, channel_login: str) -> set[str]:
        """Usernames with an open session in the channel."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT username FROM visitor_sessions "
                "WHERE channel_login = $1 AND left_at IS NULL",
                channel_login,
            )
            return {row["username"].lower() for row in rows}

    async def save_user_profile(self, profile: VisitorProfile) -> None:
        """Upsert a visitor profile by username."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO visitor_profiles
                    (username, user_id, display_name, broadcaster_type,
                     follower_count, profile_image_url, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (username) DO UPDATE SET
                    user_id           = EXCLUDED.user_id,
                    display_name      = EXCLUDED.display_name,
                    broadcaster_type  = EXCLUDED.broadcaster_type,
                    follower_count    = EXCLUDED.follower_count,
                    profile_image_url = EXCLUDED.profile_image_url,
                    updated_at        = EXCLUDED.updated_at
                """,
                profile.username,
                profile.user_id,
                profile.display_name,
                profile.broadcaster_type,
                profile.follower_count,
                profile.profile_image_url,
                profile.updated_at,
            )

    # ==================== Read Path ====================

    async def get_events(
        self, channel_login: str, limit: int = 100, offset: int = 0
    ) -> list[PresenceEvent]:
        """Newest-first page of join/leave events for a channel."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, username, event_type, ts, channel_login
                FROM presence_events
                WHERE channel_login = $1
                ORDER BY ts DESC, id DESC
                LIMIT $2 OFFSET $3
                """,
                channel_login,
                limit,
                offset,
            )
            return [PresenceEvent(**dict(row)) for row in rows]

    async def count_events(self, channel_login: str) -> int:
        async with self.pool.acquire() as conn:
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM presence_events WHERE channel_login = $1",
                channel_login,
            )
            return int(count or 0)

    async def get_sessions(
        self, channel_login: str, limit: int = 100, username: str | None = None
    ) -> list[VisitorSession]:
        """Newest-first sessions for a channel, optionally for a single user."""
        async with self.pool.acquire() as conn:
            if username:
                rows = await conn.fetch(
                    f"""
                    SELECT {_SESSION_COLUMNS} FROM visitor_sessions
                    WHERE channel_login = $1 AND username = $2
                    ORDER BY joined_at DESC
                    LIMIT $3
                    """,
                    channel_login,
                    username.lower(),
                    limit,
                )
            else:
                rows = await conn.fetch(
                    f"""
                    SELECT {_SESSION_COLUMNS} FROM visitor_sessions
                    WHERE channel_login = $1
                    ORDER BY joined_at DESC
                    LIMIT $2
                    """,
                    channel_login,
                    limit,
                )
            return [VisitorSession(**dict(row)) for row in rows]

    async def get_popular_visitors(
        self, channel_login: str, now_ms: int, limit: int = 100, offset: int = 0
    ) -> list[dict]:
        """Enriched visitors of a channel ranked by follower count, then watch time.

        Open sessions count toward watch time up to *now_ms*.
        """
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT
                    p.username,
                    p.user_id,
                    p.display_name,
                    p.broadcaster_type,
                    p.follower_count,
                    p.profile_image_url,
                    p.updated_at,
                    COALESCE(SUM(
                        CASE
                            WHEN s.duration_sec IS NOT NULL THEN s.duration_sec
                            WHEN s.left_at IS NULL THEN GREATEST(0, ($2 - s.joined_at) / 1000)
                            ELSE 0
                        END
                    ), 0)::BIGINT AS total_watch_sec,
                    COUNT(s.id) AS visit_count,
                    MAX(s.joined_at) AS last_seen
                FROM visitor_profiles p
                JOIN visitor_sessions s
                    ON s.username = p.username AND s.channel_login = $1
                GROUP BY p.username
                ORDER BY COALESCE(p.follower_count, 0) DESC, total_watch_sec DESC
                LIMIT $3 OFFSET $4
                """,
                channel_login,
                now_ms,
                limit,
                offset,
            )
            return [dict(row) for row in rows]

    async def count_visitors(self, channel_login: str) -> int:
        async with self.pool.acquire() as conn:
            count = await conn.fetchval(
                "SELECT COUNT(DISTINCT username) FROM visitor_sessions WHERE channel_login = $1",
                channel_login,
            )
            return int(count or 0)
