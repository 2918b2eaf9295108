"""Presence reconciliation: diff successive chatter snapshots into joins and leaves."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tracker.clock import Clock, now_ms
from tracker.errors import UnauthorizedError

if TYPE_CHECKING:
    from shared.repositories import PresenceRepository
    from tracker.enrichment import EnrichmentQueue
    from tracker.services.twitch_api import TwitchAPIClient
    from tracker.state import TenantAuthState
    from tracker.tokens import TokenManager

logger = logging.getLogger(__name__)


def normalize_usernames(usernames: Iterable[str | None]) -> set[str]:
    """Trimmed, lowercased, non-empty usernames."""
    return {name.strip().lower() for name in usernames if name and name.strip()}


@dataclass(frozen=True)
class PresenceDiff:
    """Users who appeared and disappeared between two snapshots. Unordered."""

    joined: frozenset[str]
    left: frozenset[str]

    def __bool__(self) -> bool:
        return bool(self.joined or self.left)


def diff_presence(previous: Iterable[str], current: Iterable[str]) -> PresenceDiff:
    prev = normalize_usernames(previous)
    curr = normalize_usernames(current)
    return PresenceDiff(joined=frozenset(curr - prev), left=frozenset(prev - curr))


class ReconciliationEngine:
    """Runs one poll for a tenant: refresh, snapshot, diff, persist.

    A failed tick leaves the tenant's presence set untouched and records the
    error on the tenant. Store writes issued before the failure are kept.
    """

    def __init__(
        self,
        api: TwitchAPIClient,
        tokens: TokenManager,
        store: PresenceRepository,
        enrichment: EnrichmentQueue,
        clock: Clock = now_ms,
    ) -> None:
        self.api = api
        self.tokens = tokens
        self.store = store
        self.enrichment = enrichment
        self._clock = clock

    async def tick(self, state: TenantAuthState) -> None:
        if not state.is_ready:
            return

        ts = self._clock()
        state.last_poll_at = ts
        channel = state.broadcaster_login

        try:
            await self.tokens.ensure_fresh(state)
            snapshot = await self.api.fetch_chatters(
                state.token, state.broadcaster_id, state.moderator_id
            )
            diff = diff_presence(state.presence, snapshot)

            for username in diff.joined:
                await self.store.event_join(username, ts, channel)
            for username in diff.left:
                await self.store.event_leave(username, ts, channel)

            if diff:
                logger.info(f"[{channel}] joins={len(diff.joined)} leaves={len(diff.left)}")
                self.enrichment.enqueue(diff.joined)

            state.presence = normalize_usernames(snapshot)
            state.last_error = None

        except UnauthorizedError as e:
            if not state.refresh_token:
                self._record_error(state, e)
                return
            try:
                await self.tokens.refresh(state)
            except Exception as refresh_error:
                self._record_error(state, refresh_error, during_refresh=True)
                return
            # Refreshed; this round is dropped and the next tick polls with the new token
            logger.info(f"[{channel}] token refreshed after 401, retrying next tick")

        except Exception as e:
            self._record_error(state, e)

    @staticmethod
    def _record_error(
        state: TenantAuthState, error: Exception, *, during_refresh: bool = False
    ) -> None:
        state.last_error = str(error) or type(error).__name__
        where = "refresh-error" if during_refresh else "error"
        logger.error(f"[{state.broadcaster_login}] tick {where}: {state.last_error}")
