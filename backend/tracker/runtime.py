"""Wiring for the presence tracker: stores, clients, engine, and scheduler."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shared.database import DatabaseManager, PoolConfig
from shared.migrations import MigrationRunner
from shared.repositories import CredentialRepository, PresenceRepository
from tracker.clock import Clock, now_ms
from tracker.enrichment import EnrichmentQueue
from tracker.presence import ReconciliationEngine
from tracker.registry import TenantRegistry
from tracker.scheduler import Scheduler
from tracker.services.twitch_api import TwitchAPIClient
from tracker.tokens import TokenManager

if TYPE_CHECKING:
    from tracker.core.config import TrackerSettings

logger = logging.getLogger(__name__)


class TrackerRuntime:
    """One process's tracker: a tenant registry plus everything that acts on it."""

    def __init__(
        self,
        settings: TrackerSettings,
        *,
        api: TwitchAPIClient,
        presence_store: PresenceRepository,
        credentials: CredentialRepository,
        clock: Clock = now_ms,
        db: DatabaseManager | None = None,
    ) -> None:
        self.settings = settings
        self.api = api
        self.presence_store = presence_store
        self.credentials = credentials
        self.db = db
        self.clock = clock

        self.registry = TenantRegistry()
        self.tokens = TokenManager(api, credentials, presence_store, clock)
        self.enrichment = EnrichmentQueue(api, presence_store, self.registry.enrichment_token, clock)
        self.engine = ReconciliationEngine(api, self.tokens, presence_store, self.enrichment, clock)
        self.scheduler = Scheduler(
            self.registry,
            self.engine,
            self.enrichment,
            poll_interval=settings.poll_interval_seconds,
            enrich_interval=settings.enrich_interval_seconds,
            initial_delay=settings.initial_poll_delay_seconds,
        )

    @classmethod
    async def create(cls, settings: TrackerSettings, service: str = "tracker") -> TrackerRuntime:
        """Connect to the database, apply migrations, and build the runtime."""
        db = DatabaseManager(settings.database_url, PoolConfig.for_service(service))
        await db.connect()
        try:
            await MigrationRunner(db.pool).run_pending()
        except Exception:
            await db.disconnect()
            raise

        api = TwitchAPIClient(settings.client_id, settings.client_secret, settings.redirect_uri)
        return cls(
            settings,
            api=api,
            presence_store=PresenceRepository(db.pool),
            credentials=CredentialRepository(db.pool),
            db=db,
        )

    async def start(self) -> None:
        """Restore persisted tenants and start both periodic loops."""
        await self.registry.restore(self.credentials, self.presence_store)
        await self.registry.seed_static(self.settings, self.presence_store)
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        try:
            await self.api.close()
        finally:
            if self.db is not None:
                await self.db.disconnect()
