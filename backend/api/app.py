"""FastAPI application factory"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from cachetools import TTLCache
from fastapi import FastAPI

from api.routers import auth_router, presence_router
from api.services.session_service import SessionService
from tracker.core.config import TrackerSettings, get_settings
from tracker.runtime import TrackerRuntime

logger = logging.getLogger(__name__)


def create_app(
    settings: TrackerSettings | None = None,
    runtime: TrackerRuntime | None = None,
) -> FastAPI:
    """Create the dashboard API.

    Without *runtime*, the lifespan connects to the database and builds one.
    """
    settings = settings or (runtime.settings if runtime else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.started_at = time.time()
        rt = runtime or await TrackerRuntime.create(settings, service="api")
        app.state.runtime = rt
        logger.info("Starting chatwatch API")
        await rt.start()

        yield

        logger.info("Shutting down chatwatch API")
        try:
            await rt.stop()
        except Exception as e:
            logger.exception(f"Error during shutdown: {e}")

    app = FastAPI(
        title="chatwatch API",
        description="Inferred chat presence, visitor sessions, and profiles",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )

    app.state.session_service = SessionService(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expire_days=settings.session_expire_days,
    )
    # state -> (session id, channel login); unanswered authorizations expire
    app.state.oauth_states = TTLCache(maxsize=1024, ttl=settings.oauth_state_ttl_seconds)

    app.include_router(auth_router.router)
    app.include_router(presence_router.router)

    @app.get("/")
    async def root():
        return {"service": "chatwatch-api", "status": "running"}

    return app
