"""Credential lifecycle for tenant sessions.

Tenant states move Unauthenticated -> Authenticated (authorize), stay
Authenticated across refreshes, become Degraded when a tick records an
error, and return to Unauthenticated on logout.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tracker.clock import Clock, now_ms
from tracker.errors import AuthorizationError, ChannelNotFoundError, TokenRefreshError
from tracker.services.twitch_api import TokenGrant

if TYPE_CHECKING:
    from shared.repositories import CredentialRepository, PresenceRepository
    from tracker.services.twitch_api import TwitchAPIClient
    from tracker.state import TenantAuthState

logger = logging.getLogger(__name__)

# Refresh once the token is within this window of expiring
REFRESH_MARGIN_MS = 60_000


def normalize_login(login: str) -> str:
    return login.strip().lower()


class TokenManager:
    """Refreshes, authorizes, and clears tenant credentials.

    Every successful credential or identity change is written through to
    the credential store.
    """

    def __init__(
        self,
        api: TwitchAPIClient,
        credentials: CredentialRepository,
        presence_store: PresenceRepository,
        clock: Clock = now_ms,
    ) -> None:
        self.api = api
        self.credentials = credentials
        self.presence_store = presence_store
        self._clock = clock

    async def persist(self, state: TenantAuthState) -> None:
        await self.credentials.save(state.to_credentials())

    def _apply_grant(self, state: TenantAuthState, grant: TokenGrant) -> None:
        state.token = grant.access_token
        state.refresh_token = grant.refresh_token or state.refresh_token
        if grant.scopes is not None:
            state.scopes = grant.scopes
        state.token_expires_at = self._clock() + grant.expires_in * 1000

    async def ensure_fresh(self, state: TenantAuthState) -> None:
        """Refresh the access token if it expires within the margin.

        Tokens without a refresh token or a known expiry are treated as
        externally managed and left alone.
        """
        if not state.refresh_token or not state.token_expires_at:
            return
        if self._clock() < state.token_expires_at - REFRESH_MARGIN_MS:
            return
        await self.refresh(state)

    async def refresh(self, state: TenantAuthState) -> None:
        """Exchange the refresh token. Raises TokenRefreshError on failure."""
        if not state.refresh_token:
            raise TokenRefreshError("No refresh token available")

        grant = await self.api.refresh_access_token(state.refresh_token)
        if not grant.success:
            raise TokenRefreshError(grant.error or "Token refresh failed")

        self._apply_grant(state, grant)
        await self.persist(state)
        logger.info(f"Refreshed token for channel {state.broadcaster_login or '-'}")

    async def authorize(self, state: TenantAuthState, code: str, channel_login: str) -> None:
        """Complete an authorization-code flow and resolve both identities.

        Nothing is written to *state* unless the exchange and both identity
        lookups succeed; a failed attempt leaves the previous credentials as
        they were.
        """
        channel_login = normalize_login(channel_login)
        if not channel_login:
            raise AuthorizationError("Missing channel login")

        grant = await self.api.exchange_code_for_token(code)
        if not grant.success:
            raise AuthorizationError(grant.error or "Token exchange failed")

        me = await self.api.fetch_me(grant.access_token)
        if not me:
            raise AuthorizationError("Unable to fetch moderator identity from token")
        broadcaster = await self._resolve_broadcaster(grant.access_token, channel_login)

        state.refresh_token = None
        self._apply_grant(state, grant)
        state.moderator_id = me.get("id")
        state.moderator_login = me.get("login")
        await self._track(state, broadcaster, channel_login)
        logger.info(
            f"Authorized {state.moderator_login} as moderator of {state.broadcaster_login}"
        )

    async def switch_channel(self, state: TenantAuthState, channel_login: str) -> None:
        """Point an authenticated tenant at another channel."""
        if not state.token:
            raise AuthorizationError("Not authenticated")
        channel_login = normalize_login(channel_login)
        if not channel_login:
            raise AuthorizationError("Missing channel login")
        broadcaster = await self._resolve_broadcaster(state.token, channel_login)
        await self._track(state, broadcaster, channel_login)
        logger.info(f"Session now tracking {state.broadcaster_login}")

    async def _resolve_broadcaster(self, token: str, channel_login: str) -> dict:
        broadcaster = await self.api.fetch_user_by_login(token, channel_login)
        if not broadcaster:
            raise ChannelNotFoundError(f"Broadcaster login not found: {channel_login}")
        return broadcaster

    async def _track(self, state: TenantAuthState, broadcaster: dict, channel_login: str) -> None:
        state.broadcaster_id = broadcaster.get("id")
        state.broadcaster_login = normalize_login(broadcaster.get("login") or channel_login)
        state.presence = await self.presence_store.get_open_set(state.broadcaster_login)
        state.last_error = None
        await self.persist(state)

    async def logout(self, state: TenantAuthState) -> None:
        """Drop all credentials, identities, and presence for the tenant."""
        state.reset()
        await self.credentials.delete(state.session_id)
        logger.info(f"Session {state.session_id[:8]} logged out")
