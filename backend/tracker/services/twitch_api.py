"""Twitch API client for presence polling and profile lookups.

All Helix calls use the tenant's user access token (Get Chatters needs a
moderator token). Helix failures raise ``TwitchAPIError`` so the caller can
tell a 401 apart from everything else; token endpoints return a
``TokenGrant`` instead.
"""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from tracker.core.config import TRACKER_SCOPES
from tracker.errors import TwitchAPIError, UnauthorizedError

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"

CHATTERS_PAGE_SIZE = 1000
# Hard ceiling so a cursor that never ends cannot stall a poll round
CHATTERS_MAX_PAGES = 20
USERS_BATCH_SIZE = 100


@dataclass
class TokenGrant:
    """Result of an authorization-code or refresh-token exchange."""

    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int = 0
    scopes: list[str] | None = None
    error: str | None = None


class TwitchAPIClient:
    """Client for the Twitch OAuth and Helix endpoints the tracker uses.

    Holds one shared httpx client for connection reuse.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        http: httpx.AsyncClient | None = None,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._http = http or httpx.AsyncClient(timeout=15.0)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on shutdown."""
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        if isinstance(data, dict) and data.get("message"):
            return f"HTTP {response.status_code}: {data['message']}"
        return f"HTTP {response.status_code}"

    async def _helix_get(self, path: str, params: Any = None, *, token: str) -> dict:
        """GET a Helix resource and return the decoded body."""
        try:
            response = await self._http.get(
                f"{HELIX_BASE}/{path}",
                params=params,
                headers=self._headers(token),
            )
        except httpx.HTTPError as e:
            raise TwitchAPIError(f"GET /{path} failed: {type(e).__name__}: {e}") from e

        if response.status_code == 401:
            raise UnauthorizedError(self._error_message(response))
        if response.status_code != 200:
            raise TwitchAPIError(
                f"GET /{path} failed: {self._error_message(response)}",
                status_code=response.status_code,
            )
        return response.json()

    async def _token_request(self, data: dict[str, str]) -> TokenGrant:
        """POST to the OAuth token endpoint."""
        try:
            response = await self._http.post(f"{OAUTH_BASE}/token", data=data)
        except httpx.TimeoutException:
            logger.error(f"Timeout during {data['grant_type']} exchange")
            return TokenGrant(success=False, error="timeout")
        except httpx.HTTPError as e:
            logger.error(f"{data['grant_type']} exchange failed: {type(e).__name__}: {e}")
            return TokenGrant(success=False, error=str(e) or type(e).__name__)

        if response.status_code != 200:
            error_msg = self._error_message(response)
            logger.error(f"{data['grant_type']} exchange rejected: {error_msg}")
            return TokenGrant(success=False, error=error_msg)

        body = response.json()
        access_token = body.get("access_token")
        if not access_token:
            return TokenGrant(success=False, error="No access_token in token response")

        scope = body.get("scope")
        return TokenGrant(
            success=True,
            access_token=access_token,
            refresh_token=body.get("refresh_token") or None,
            expires_in=int(body.get("expires_in") or 0),
            scopes=list(scope) if isinstance(scope, list) else None,
        )

    # ------------------------------------------------------------------
    # OAuth flow
    # ------------------------------------------------------------------

    def generate_oauth_url(self, state: str) -> str:
        """Generate the Twitch authorization URL for the tracker scopes."""
        scope_string = quote(" ".join(TRACKER_SCOPES), safe="")
        return (
            f"{OAUTH_BASE}/authorize"
            f"?client_id={quote(self.client_id, safe='')}"
            f"&redirect_uri={quote(self.redirect_uri, safe='')}"
            f"&response_type=code"
            f"&scope={scope_string}"
            f"&state={quote(state, safe='')}"
        )

    async def exchange_code_for_token(self, code: str) -> TokenGrant:
        """Exchange an OAuth authorization code for user tokens."""
        return await self._token_request(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            }
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Refresh a user access token.

        Twitch may rotate the refresh token; ``refresh_token`` is None in the
        grant when it did not.
        """
        grant = await self._token_request(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            }
        )
        if grant.success:
            logger.debug("Refreshed user access token")
        return grant

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def fetch_me(self, token: str) -> dict | None:
        """The user who owns *token*."""
        data = await self._helix_get("users", token=token)
        users = data.get("data") or []
        return users[0] if users else None

    async def fetch_user_by_login(self, token: str, login: str) -> dict | None:
        """Look up a single user by login name."""
        data = await self._helix_get("users", {"login": login}, token=token)
        users = data.get("data") or []
        return users[0] if users else None

    async def fetch_users_by_logins(self, token: str, logins: list[str]) -> list[dict]:
        """Look up many users, chunked to the Helix per-request limit."""
        users: list[dict] = []
        for i in range(0, len(logins), USERS_BATCH_SIZE):
            chunk = logins[i : i + USERS_BATCH_SIZE]
            data = await self._helix_get("users", {"login": chunk}, token=token)
            users.extend(data.get("data") or [])
        return users

    async def fetch_follower_count(self, token: str, broadcaster_id: str) -> int | None:
        """Total followers of a channel."""
        data = await self._helix_get(
            "channels/followers",
            {"broadcaster_id": broadcaster_id, "first": 1},
            token=token,
        )
        total = data.get("total")
        return int(total) if total is not None else None

    # ------------------------------------------------------------------
    # Chatters
    # ------------------------------------------------------------------

    async def fetch_chatters(self, token: str, broadcaster_id: str, moderator_id: str) -> set[str]:
        """Current chat participants as lowercase logins.

        Follows the pagination cursor for at most ``CHATTERS_MAX_PAGES`` pages.
        """
        params: dict[str, Any] = {
            "broadcaster_id": broadcaster_id,
            "moderator_id": moderator_id,
            "first": CHATTERS_PAGE_SIZE,
        }
        chatters: set[str] = set()
        cursor: str | None = None

        for _ in range(CHATTERS_MAX_PAGES):
            page_params = {**params, "after": cursor} if cursor else params
            data = await self._helix_get("chat/chatters", page_params, token=token)

            for row in data.get("data") or []:
                login = (row.get("user_login") or "").strip().lower()
                if login:
                    chatters.add(login)

            cursor = (data.get("pagination") or {}).get("cursor")
            if not cursor:
                break
        else:
            logger.warning(
                f"Chatters for {broadcaster_id} truncated at {CHATTERS_MAX_PAGES} pages"
            )

        return chatters
