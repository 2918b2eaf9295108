"""Repository for the tenant_credentials table."""

from __future__ import annotations

import logging

import asyncpg

from shared.models.credentials import TenantCredentials

logger = logging.getLogger(__name__)

_COLUMNS = (
    "session_id, token, refresh_token, token_expires_at, moderator_id, "
    "moderator_login, broadcaster_id, broadcaster_login, scopes"
)


class CredentialRepository:
    """Durable per-tenant credential snapshots.

    Every save rewrites the whole row; there is no partial update.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def list_all(self) -> list[TenantCredentials]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM tenant_credentials ORDER BY updated_at, session_id"
            )
            return [
                TenantCredentials(**{**dict(row), "scopes": list(row["scopes"] or [])})
                for row in rows
            ]

    async def save(self, creds: TenantCredentials) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO tenant_credentials
                    (session_id, token, refresh_token, token_expires_at, moderator_id,
                     moderator_login, broadcaster_id, broadcaster_login, scopes)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                ON CONFLICT (session_id) DO UPDATE SET
                    token             = EXCLUDED.token,
                    refresh_token     = EXCLUDED.refresh_token,
                    token_expires_at  = EXCLUDED.token_expires_at,
                    moderator_id      = EXCLUDED.moderator_id,
                    moderator_login   = EXCLUDED.moderator_login,
                    broadcaster_id    = EXCLUDED.broadcaster_id,
                    broadcaster_login = EXCLUDED.broadcaster_login,
                    scopes            = EXCLUDED.scopes,
                    updated_at        = NOW()
                """,
                creds.session_id,
                creds.token,
                creds.refresh_token,
                creds.token_expires_at,
                creds.moderator_id,
                creds.moderator_login,
                creds.broadcaster_id,
                creds.broadcaster_login,
                list(creds.scopes),
            )

    async def delete(self, session_id: str) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("DELETE FROM tenant_credentials WHERE session_id = $1", session_id)
        logger.debug(f"Deleted credentials for session {session_id}")
