"""Presence state and history API routes"""

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from api.core.dependencies import get_runtime, get_tenant
from tracker.runtime import TrackerRuntime
from tracker.state import TenantAuthState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["presence"])

MAX_PAGE = 1000


# ============================================
# Response Models
# ============================================


class HealthResponse(BaseModel):
    ok: bool = True
    poll_interval_seconds: float
    last_poll_at: int | None
    has_error: bool


class EnrichmentStats(BaseModel):
    queued: int
    running: bool


class StateAuth(BaseModel):
    authed: bool
    broadcaster_login: str | None
    moderator_login: str | None


class StateResponse(BaseModel):
    online_count: int
    users: list[str]
    last_poll_at: int | None
    last_error: str | None
    enrich: EnrichmentStats
    auth: StateAuth
    channel: str | None


class EventItem(BaseModel):
    id: int | None
    username: str
    event_type: str
    ts: int
    channel_login: str


class EventsResponse(BaseModel):
    items: list[EventItem]
    total: int
    limit: int
    offset: int
    channel: str | None


class SessionItem(BaseModel):
    id: int | None
    username: str
    channel_login: str
    joined_at: int
    left_at: int | None
    duration_sec: int | None


class SessionsResponse(BaseModel):
    items: list[SessionItem]
    channel: str | None


class VisitorItem(BaseModel):
    username: str
    user_id: str | None
    display_name: str | None
    broadcaster_type: str | None
    follower_count: int | None
    profile_image_url: str | None
    updated_at: int | None
    total_watch_sec: int
    visit_count: int
    last_seen: int | None


class VisitorsResponse(BaseModel):
    items: list[VisitorItem]
    total: int
    limit: int
    offset: int
    channel: str | None


def _channel_for(tenant: TenantAuthState, channel: str | None) -> str:
    return (channel or tenant.broadcaster_login or "").strip().lower()


# ============================================
# Endpoints
# ============================================


@router.get("/health", response_model=HealthResponse)
async def health(
    tenant: TenantAuthState = Depends(get_tenant),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> HealthResponse:
    return HealthResponse(
        poll_interval_seconds=runtime.settings.poll_interval_seconds,
        last_poll_at=tenant.last_poll_at,
        has_error=bool(tenant.last_error),
    )


@router.get("/state", response_model=StateResponse)
async def state(
    tenant: TenantAuthState = Depends(get_tenant),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> StateResponse:
    """Who is in chat right now, as of the last successful poll"""
    return StateResponse(
        online_count=len(tenant.presence),
        users=sorted(tenant.presence),
        last_poll_at=tenant.last_poll_at,
        last_error=tenant.last_error,
        enrich=EnrichmentStats(**runtime.enrichment.stats()),
        auth=StateAuth(
            authed=bool(tenant.token),
            broadcaster_login=tenant.broadcaster_login,
            moderator_login=tenant.moderator_login,
        ),
        channel=tenant.broadcaster_login,
    )


@router.get("/events", response_model=EventsResponse)
async def events(
    channel: str | None = None,
    limit: int = Query(default=100, ge=1),
    offset: int = Query(default=0),
    tenant: TenantAuthState = Depends(get_tenant),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> EventsResponse:
    limit = min(limit, MAX_PAGE)
    offset = max(0, offset)
    login = _channel_for(tenant, channel)
    if not login:
        return EventsResponse(items=[], total=0, limit=limit, offset=offset, channel=None)

    store = runtime.presence_store
    rows = await store.get_events(login, limit, offset)
    return EventsResponse(
        items=[EventItem.model_validate(row, from_attributes=True) for row in rows],
        total=await store.count_events(login),
        limit=limit,
        offset=offset,
        channel=login,
    )


@router.get("/sessions", response_model=SessionsResponse)
async def sessions(
    channel: str | None = None,
    username: str | None = None,
    limit: int = Query(default=100, ge=1),
    tenant: TenantAuthState = Depends(get_tenant),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> SessionsResponse:
    login = _channel_for(tenant, channel)
    if not login:
        return SessionsResponse(items=[], channel=None)

    rows = await runtime.presence_store.get_sessions(
        login, min(limit, MAX_PAGE), username=username.lower() if username else None
    )
    return SessionsResponse(
        items=[SessionItem.model_validate(row, from_attributes=True) for row in rows],
        channel=login,
    )


@router.get("/visitors/popular", response_model=VisitorsResponse)
async def popular_visitors(
    channel: str | None = None,
    limit: int = Query(default=100, ge=1),
    offset: int = Query(default=0),
    tenant: TenantAuthState = Depends(get_tenant),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> VisitorsResponse:
    """Enriched visitors ranked by follower count, then watch time"""
    limit = min(limit, MAX_PAGE)
    offset = max(0, offset)
    login = _channel_for(tenant, channel)
    if not login:
        return VisitorsResponse(items=[], total=0, limit=limit, offset=offset, channel=None)

    store = runtime.presence_store
    rows = await store.get_popular_visitors(login, runtime.clock(), limit, offset)
    return VisitorsResponse(
        items=[VisitorItem(**row) for row in rows],
        total=await store.count_visitors(login),
        limit=limit,
        offset=offset,
        channel=login,
    )
