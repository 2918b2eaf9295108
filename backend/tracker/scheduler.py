"""Two periodic loops: presence polling across tenants, and enrichment drains."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tracker.enrichment import EnrichmentQueue
    from tracker.presence import ReconciliationEngine
    from tracker.registry import TenantRegistry

logger = logging.getLogger(__name__)


class Scheduler:
    """Drives reconciliation and enrichment on the running event loop.

    Each loop finishes its unit of work before sleeping, so a poll round
    never overlaps the previous one and tenants within a round are ticked
    one after another. The enrichment loop is independent of the poll
    interval and of the number of tenants.
    """

    def __init__(
        self,
        registry: TenantRegistry,
        engine: ReconciliationEngine,
        enrichment: EnrichmentQueue,
        *,
        poll_interval: float = 15.0,
        enrich_interval: float = 4.0,
        initial_delay: float = 1.5,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.enrichment = enrichment
        self.poll_interval = poll_interval
        self.enrich_interval = enrich_interval
        self.initial_delay = initial_delay
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def run_round(self) -> None:
        """Tick every registered tenant once, in registration order."""
        for state in self.registry.tenants():
            try:
                await self.engine.tick(state)
            except Exception as e:
                logger.exception(f"Tick for session {state.session_id[:8]} crashed: {e}")

    async def run_enrichment(self) -> None:
        try:
            await self.enrichment.drain()
        except Exception as e:
            logger.error(f"Enrichment drain failed: {type(e).__name__}: {e}")

    async def _poll_loop(self) -> None:
        await asyncio.sleep(self.initial_delay)
        while True:
            started = time.monotonic()
            await self.run_round()
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self.poll_interval - elapsed))

    async def _enrich_loop(self) -> None:
        while True:
            await asyncio.sleep(self.enrich_interval)
            await self.run_enrichment()

    def start(self) -> None:
        if self.running:
            logger.warning("Scheduler already running")
            return
        self._tasks = [
            asyncio.create_task(self._poll_loop(), name="presence-poll"),
            asyncio.create_task(self._enrich_loop(), name="profile-enrichment"),
        ]
        logger.info(
            f"Scheduler started (poll={self.poll_interval}s, enrich={self.enrich_interval}s)"
        )

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        logger.info("Scheduler stopped")
