"""Process-wide collection of tenant sessions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tracker.core.config import STATIC_SESSION_ID
from tracker.state import TenantAuthState

if TYPE_CHECKING:
    from shared.repositories import CredentialRepository, PresenceRepository
    from tracker.core.config import TrackerSettings

logger = logging.getLogger(__name__)


class TenantRegistry:
    """Tenant states keyed by opaque session id, kept in registration order."""

    def __init__(self) -> None:
        self._tenants: dict[str, TenantAuthState] = {}

    def __len__(self) -> int:
        return len(self._tenants)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._tenants

    def get(self, session_id: str) -> TenantAuthState | None:
        return self._tenants.get(session_id)

    def add(self, state: TenantAuthState) -> None:
        if state.session_id not in self._tenants:
            logger.debug(f"Registered session {state.session_id[:8]}")
        self._tenants[state.session_id] = state

    def remove(self, session_id: str) -> TenantAuthState | None:
        return self._tenants.pop(session_id, None)

    def tenants(self) -> list[TenantAuthState]:
        """Snapshot of all tenants in registration order."""
        return list(self._tenants.values())

    def enrichment_token(self) -> str | None:
        """Token of the first tenant that is being polled and not degraded.

        Only polled tenants have their tokens refreshed, so an idle token is
        never handed out.
        """
        for state in self._tenants.values():
            if state.is_ready and not state.last_error:
                return state.token
        return None

    async def restore(
        self,
        credentials: CredentialRepository,
        presence_store: PresenceRepository,
    ) -> int:
        """Load persisted tenants; presence baselines come from open sessions."""
        restored = 0
        for creds in await credentials.list_all():
            state = TenantAuthState.from_credentials(creds)
            if state.broadcaster_login:
                state.presence = await presence_store.get_open_set(state.broadcaster_login)
            self.add(state)
            restored += 1
        logger.info(f"Restored {restored} tenant session(s)")
        return restored

    async def seed_static(
        self, settings: TrackerSettings, presence_store: PresenceRepository
    ) -> TenantAuthState | None:
        """Register the externally supplied tenant, if one is configured.

        A persisted ``static`` session (e.g. with a refreshed token) wins over
        the environment values.
        """
        if not settings.has_static_tenant or STATIC_SESSION_ID in self._tenants:
            return None

        state = TenantAuthState(
            session_id=STATIC_SESSION_ID,
            token=settings.static_access_token,
            moderator_id=settings.static_moderator_id,
            broadcaster_id=settings.static_broadcaster_id,
            broadcaster_login=settings.static_broadcaster_login,
        )
        state.presence = await presence_store.get_open_set(state.broadcaster_login)
        self.add(state)
        logger.info(f"Static session tracking {state.broadcaster_login}")
        return state
