"""Dependency injection utilities for FastAPI"""

import logging
from dataclasses import dataclass

from fastapi import Cookie, Depends, Request, Response

from api.services.session_service import SessionService
from tracker.runtime import TrackerRuntime
from tracker.state import TenantAuthState

logger = logging.getLogger(__name__)

SESSION_COOKIE = "chatwatch_session"


@dataclass
class SessionContext:
    """The caller's tenant session. ``new_token`` is set when it was just minted."""

    session_id: str
    new_token: str | None = None


def get_runtime(request: Request) -> TrackerRuntime:
    return request.app.state.runtime


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


def get_session(
    chatwatch_session: str | None = Cookie(None),
    sessions: SessionService = Depends(get_session_service),
) -> SessionContext:
    """Resolve the session cookie, minting a new session on first contact"""
    if chatwatch_session:
        session_id = sessions.verify_token(chatwatch_session)
        if session_id:
            return SessionContext(session_id=session_id)

    session_id = sessions.new_session_id()
    return SessionContext(session_id=session_id, new_token=sessions.create_session_token(session_id))


def apply_session_cookie(
    response: Response, session: SessionContext, sessions: SessionService
) -> None:
    if session.new_token:
        response.set_cookie(
            SESSION_COOKIE,
            session.new_token,
            max_age=sessions.max_age,
            httponly=True,
            samesite="lax",
        )


def get_tenant(
    response: Response,
    session: SessionContext = Depends(get_session),
    sessions: SessionService = Depends(get_session_service),
    runtime: TrackerRuntime = Depends(get_runtime),
) -> TenantAuthState:
    """Tenant state for the caller's session.

    Sessions that never completed authorization get a detached, unregistered
    state; only the OAuth callback adds tenants to the registry.
    """
    apply_session_cookie(response, session, sessions)
    tenant = runtime.registry.get(session.session_id)
    return tenant if tenant is not None else TenantAuthState(session_id=session.session_id)
