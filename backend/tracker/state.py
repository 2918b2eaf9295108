"""Per-tenant authentication and presence state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from shared.models.credentials import TenantCredentials


class TenantStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    DEGRADED = "degraded"


@dataclass
class TenantAuthState:
    """Everything the tracker knows about one operator session.

    ``presence`` holds lowercase usernames and is rebuilt from the store's
    open sessions on restore; only the credential fields are persisted.
    """

    session_id: str
    token: str | None = None
    refresh_token: str | None = None
    token_expires_at: int | None = None
    moderator_id: str | None = None
    moderator_login: str | None = None
    broadcaster_id: str | None = None
    broadcaster_login: str | None = None
    scopes: list[str] = field(default_factory=list)
    presence: set[str] = field(default_factory=set)
    last_poll_at: int | None = None
    last_error: str | None = None

    @property
    def is_ready(self) -> bool:
        """Token and every identity needed to poll are resolved."""
        return bool(
            self.token and self.broadcaster_id and self.moderator_id and self.broadcaster_login
        )

    @property
    def status(self) -> TenantStatus:
        if not self.token:
            return TenantStatus.UNAUTHENTICATED
        if self.last_error:
            return TenantStatus.DEGRADED
        return TenantStatus.AUTHENTICATED

    def reset(self) -> None:
        """Forget credentials, identities, presence, and errors."""
        self.token = None
        self.refresh_token = None
        self.token_expires_at = None
        self.moderator_id = None
        self.moderator_login = None
        self.broadcaster_id = None
        self.broadcaster_login = None
        self.scopes = []
        self.presence = set()
        self.last_error = None

    def to_credentials(self) -> TenantCredentials:
        return TenantCredentials(
            session_id=self.session_id,
            token=self.token,
            refresh_token=self.refresh_token,
            token_expires_at=self.token_expires_at,
            moderator_id=self.moderator_id,
            moderator_login=self.moderator_login,
            broadcaster_id=self.broadcaster_id,
            broadcaster_login=self.broadcaster_login,
            scopes=list(self.scopes),
        )

    @classmethod
    def from_credentials(cls, creds: TenantCredentials) -> TenantAuthState:
        return cls(
            session_id=creds.session_id,
            token=creds.token,
            refresh_token=creds.refresh_token,
            token_expires_at=creds.token_expires_at,
            moderator_id=creds.moderator_id,
            moderator_login=creds.moderator_login,
            broadcaster_id=creds.broadcaster_id,
            broadcaster_login=creds.broadcaster_login,
            scopes=list(creds.scopes),
        )
