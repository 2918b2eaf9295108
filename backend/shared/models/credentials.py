"""Persisted credential snapshot for one tenant session."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TenantCredentials:
    """Credentials and resolved identities. The presence set is never persisted."""

    session_id: str
    token: str | None = None
    refresh_token: str | None = None
    token_expires_at: int | None = None
    moderator_id: str | None = None
    moderator_login: str | None = None
    broadcaster_id: str | None = None
    broadcaster_login: str | None = None
    scopes: list[str] = field(default_factory=list)
