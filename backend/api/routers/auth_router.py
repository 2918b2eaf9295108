"""Authentication API routes"""

import html
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel

from api.core.dependencies import (
    SessionContext,
    apply_session_cookie,
    get_runtime,
    get_session,
    get_session_service,
    get_tenant,
)
from api.services.session_service import SessionService
from tracker.errors import AuthorizationError, ChannelNotFoundError, TrackerError
from tracker.runtime import TrackerRuntime
from tracker.state import TenantAuthState
from tracker.tokens import normalize_login

logger = logging.getLogger(__name__)

router = APIRouter(tags=["authentication"])


# ============================================
# Response Models
# ============================================


class AuthStatusResponse(BaseModel):
    configured: bool
    authed: bool
    status: str
    moderator_id: str | None
    moderator_login: str | None
    broadcaster_id: str | None
    broadcaster_login: str | None
    scopes: list[str]
    token_expires_at: int | None


class OkResponse(BaseModel):
    ok: bool = True


class TrackResponse(BaseModel):
    ok: bool = True
    broadcaster_id: str | None
    broadcaster_login: str | None


# ============================================
# Endpoints
# ============================================


@router.get("/auth/start")
async def auth_start(
    request: Request,
    channel: str = "",
    session: SessionContext = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> RedirectResponse:
    """Redirect to Twitch to authorize a moderator token for *channel*"""
    settings = runtime.settings
    if not settings.client_id or not settings.client_secret:
        raise HTTPException(status_code=400, detail="Set CLIENT_ID and CLIENT_SECRET first.")

    broadcaster_login = normalize_login(channel)
    if not broadcaster_login:
        raise HTTPException(status_code=400, detail="Missing ?channel=<twitch_login>")

    state = secrets.token_hex(18)
    request.app.state.oauth_states[state] = (session.session_id, broadcaster_login)

    response = RedirectResponse(runtime.api.generate_oauth_url(state))
    apply_session_cookie(response, session, sessions)
    return response


@router.get("/auth/callback", response_class=HTMLResponse)
async def auth_callback(
    request: Request,
    code: str = "",
    state: str = "",
    runtime: TrackerRuntime = Depends(get_runtime),
) -> HTMLResponse:
    """OAuth redirect target: exchange the code and resolve identities"""
    pending = request.app.state.oauth_states.pop(state, None) if state else None
    if not code or not pending:
        raise HTTPException(
            status_code=400, detail="Invalid OAuth callback (missing/invalid state)."
        )

    session_id, broadcaster_login = pending
    tenant = runtime.registry.get(session_id) or TenantAuthState(session_id=session_id)
    try:
        await runtime.tokens.authorize(tenant, code, broadcaster_login)
    except TrackerError as e:
        logger.error(f"OAuth failed for {broadcaster_login}: {e}")
        raise HTTPException(status_code=500, detail=f"OAuth failed: {e}") from e
    runtime.registry.add(tenant)

    return HTMLResponse(
        "OAuth complete<br/>"
        f"Channel: {html.escape(tenant.broadcaster_login or '')}<br/>"
        f"Moderator token user: {html.escape(tenant.moderator_login or '')}<br/>"
        "<a href='/'>Open dashboard</a>"
    )


@router.get("/auth/status", response_model=AuthStatusResponse)
async def auth_status(
    tenant: TenantAuthState = Depends(get_tenant),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> AuthStatusResponse:
    settings = runtime.settings
    return AuthStatusResponse(
        configured=bool(settings.client_id and settings.client_secret),
        authed=bool(tenant.token),
        status=tenant.status.value,
        moderator_id=tenant.moderator_id,
        moderator_login=tenant.moderator_login,
        broadcaster_id=tenant.broadcaster_id,
        broadcaster_login=tenant.broadcaster_login,
        scopes=tenant.scopes,
        token_expires_at=tenant.token_expires_at,
    )


@router.post("/auth/logout", response_model=OkResponse)
async def auth_logout(
    tenant: TenantAuthState = Depends(get_tenant),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> OkResponse:
    await runtime.tokens.logout(tenant)
    runtime.registry.remove(tenant.session_id)
    return OkResponse()


@router.get("/track/set", response_model=TrackResponse)
async def track_set(
    channel: str = "",
    tenant: TenantAuthState = Depends(get_tenant),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> TrackResponse:
    """Switch the tracked channel for the caller's session"""
    if not tenant.token:
        raise HTTPException(status_code=401, detail="Not authed yet. Connect Twitch first.")
    if not normalize_login(channel):
        raise HTTPException(status_code=400, detail="Missing ?channel=<twitch_login>")

    try:
        await runtime.tokens.switch_channel(tenant, channel)
    except ChannelNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except AuthorizationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except TrackerError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    return TrackResponse(
        broadcaster_id=tenant.broadcaster_id,
        broadcaster_login=tenant.broadcaster_login,
    )
