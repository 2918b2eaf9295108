"""External service clients used by the tracker."""

from .twitch_api import TokenGrant, TwitchAPIClient

__all__ = [
    "TokenGrant",
    "TwitchAPIClient",
]
