"""Background profile enrichment for newly seen visitors."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from itertools import islice
from typing import TYPE_CHECKING

from shared.models.presence import VisitorProfile
from tracker.clock import Clock, now_ms

if TYPE_CHECKING:
    from shared.repositories import PresenceRepository
    from tracker.services.twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

BATCH_SIZE = 50


class EnrichmentQueue:
    """Deduplicating set of usernames awaiting a profile lookup.

    ``drain`` takes at most ``BATCH_SIZE`` names per call and never runs
    twice at once, so at most one batch is in flight.
    """

    def __init__(
        self,
        api: TwitchAPIClient,
        store: PresenceRepository,
        token_provider: Callable[[], str | None],
        clock: Clock = now_ms,
    ) -> None:
        self.api = api
        self.store = store
        self._token_provider = token_provider
        self._clock = clock
        self._pending: set[str] = set()
        self._running = False

    def enqueue(self, usernames: Iterable[str | None]) -> None:
        for name in usernames:
            if name:
                self._pending.add(str(name).lower())

    def stats(self) -> dict:
        return {"queued": len(self._pending), "running": self._running}

    async def drain(self) -> int:
        """Enrich one batch. Returns the number of profiles saved."""
        if self._running or not self._pending:
            return 0

        token = self._token_provider()
        if not token:
            logger.debug(f"No usable token, {len(self._pending)} profiles stay queued")
            return 0

        self._running = True
        try:
            batch = list(islice(self._pending, BATCH_SIZE))
            # Removed up front: names enqueued while we await are kept for the next drain
            self._pending.difference_update(batch)

            users = await self.api.fetch_users_by_logins(token, batch)
            for user in users:
                await self.store.save_user_profile(
                    VisitorProfile(
                        username=(user.get("login") or "").lower(),
                        user_id=user.get("id") or None,
                        display_name=user.get("display_name") or None,
                        broadcaster_type=user.get("broadcaster_type") or None,
                        follower_count=await self._follower_count(token, user),
                        profile_image_url=user.get("profile_image_url") or None,
                        updated_at=self._clock(),
                    )
                )

            logger.debug(f"Enriched {len(users)}/{len(batch)} profiles")
            return len(users)
        finally:
            self._running = False

    async def _follower_count(self, token: str, user: dict) -> int | None:
        user_id = user.get("id")
        if not user_id:
            return None
        try:
            return await self.api.fetch_follower_count(token, user_id)
        except Exception as e:
            logger.debug(f"Follower lookup failed for {user.get('login')}: {e}")
            return None
