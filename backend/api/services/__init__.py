"""Services used by the API layer."""

from .session_service import SessionService

__all__ = ["SessionService"]
