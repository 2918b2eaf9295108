"""Exceptions raised by the presence tracker."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for tracker failures."""


class TwitchAPIError(TrackerError):
    """Non-2xx response or transport failure from the Twitch API.

    ``status_code`` is None when no response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnauthorizedError(TwitchAPIError):
    """HTTP 401: the access token is expired or revoked."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status_code=401)


class TokenRefreshError(TrackerError):
    """The refresh-token exchange was rejected or failed."""


class AuthorizationError(TrackerError):
    """Authorization-code exchange or identity resolution failed."""


class ChannelNotFoundError(AuthorizationError):
    """No Twitch user exists for the requested channel login."""
