from __future__ import annotations

from collections import deque
from typing import Any

import pytest

from shared.models import JOIN, LEAVE, PresenceEvent, VisitorProfile, VisitorSession
from shared.models import session_duration_sec
from tracker.core.config import TrackerSettings
from tracker.errors import TwitchAPIError
from tracker.services.twitch_api import TokenGrant
from tracker.state import TenantAuthState


class ManualClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakePresenceStore:
    """In-memory stand-in for PresenceRepository with the same open/close rules."""

    def __init__(self) -> None:
        self.events: list[PresenceEvent] = []
        self.sessions: list[VisitorSession] = []
        self.profiles: dict[str, VisitorProfile] = {}
        self.fail_on_join: set[str] = set()

    async def event_join(self, username: str, ts: int, channel_login: str) -> None:
        if username in self.fail_on_join:
            raise RuntimeError(f"db down for {username}")
        self.events.append(PresenceEvent(username, JOIN, ts, channel_login))
        self.sessions.append(VisitorSession(username, channel_login, ts))

    async def event_leave(self, username: str, ts: int, channel_login: str) -> None:
        self.events.append(PresenceEvent(username, LEAVE, ts, channel_login))
        open_sessions = [
            s
            for s in self.sessions
            if s.username == username and s.channel_login == channel_login and s.is_open
        ]
        if not open_sessions:
            return
        latest = max(open_sessions, key=lambda s: s.joined_at)
        latest.left_at = ts
        latest.duration_sec = session_duration_sec(latest.joined_at, ts)

    async def get_open_set(self, channel_login: str) -> set[str]:
        return {s.username for s in self.sessions if s.channel_login == channel_login and s.is_open}

    async def save_user_profile(self, profile: VisitorProfile) -> None:
        self.profiles[profile.username] = profile

    async def get_events(self, channel_login: str, limit: int = 100, offset: int = 0):
        rows = [e for e in reversed(self.events) if e.channel_login == channel_login]
        return rows[offset : offset + limit]

    async def count_events(self, channel_login: str) -> int:
        return sum(1 for e in self.events if e.channel_login == channel_login)

    async def get_sessions(self, channel_login: str, limit: int = 100, username: str | None = None):
        rows = [
            s
            for s in reversed(self.sessions)
            if s.channel_login == channel_login and (username is None or s.username == username)
        ]
        return rows[:limit]

    async def get_popular_visitors(self, channel_login: str, now_ms: int, limit=100, offset=0):
        return []

    async def count_visitors(self, channel_login: str) -> int:
        return len({s.username for s in self.sessions if s.channel_login == channel_login})

    def open_sessions(self, channel_login: str) -> list[VisitorSession]:
        return [s for s in self.sessions if s.channel_login == channel_login and s.is_open]

    def session_for(self, username: str) -> VisitorSession:
        return next(s for s in self.sessions if s.username == username)


class FakeCredentialStore:
    def __init__(self, records=None) -> None:
        self.records = {c.session_id: c for c in records or []}
        self.saved = []
        self.deleted: list[str] = []

    async def list_all(self):
        return list(self.records.values())

    async def save(self, creds) -> None:
        self.records[creds.session_id] = creds
        self.saved.append(creds)

    async def delete(self, session_id: str) -> None:
        self.records.pop(session_id, None)
        self.deleted.append(session_id)


class FakeTwitchAPI:
    """Scripted Twitch client that counts calls.

    ``snapshots`` entries are consumed one per fetch_chatters call; an
    exception instance is raised instead of returned.
    """

    def __init__(self) -> None:
        self.snapshots: deque[Any] = deque()
        self.refresh_grants: deque[TokenGrant] = deque()
        self.exchange_grant = TokenGrant(
            success=True, access_token="new-token", refresh_token="new-refresh", expires_in=3600
        )
        self.me: dict | None = {"id": "mod-1", "login": "modbot"}
        self.users: dict[str, dict] = {}
        self.followers: dict[str, int] = {}
        self.follower_errors: set[str] = set()
        self.users_error: Exception | None = None
        self.calls: dict[str, int] = {}
        self.batches: list[list[str]] = []
        self.tokens_seen: list[str] = []
        self.closed = False

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    def generate_oauth_url(self, state: str) -> str:
        return f"https://id.twitch.tv/oauth2/authorize?state={state}"

    async def fetch_chatters(self, token, broadcaster_id, moderator_id) -> set[str]:
        self._count("fetch_chatters")
        self.tokens_seen.append(token)
        item = self.snapshots.popleft() if self.snapshots else set()
        if isinstance(item, Exception):
            raise item
        return set(item)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        self._count("refresh_access_token")
        if self.refresh_grants:
            return self.refresh_grants.popleft()
        return TokenGrant(success=False, error="invalid refresh token")

    async def exchange_code_for_token(self, code: str) -> TokenGrant:
        self._count("exchange_code_for_token")
        return self.exchange_grant

    async def fetch_me(self, token: str):
        self._count("fetch_me")
        return self.me

    async def fetch_user_by_login(self, token: str, login: str):
        self._count("fetch_user_by_login")
        return self.users.get(login)

    async def fetch_users_by_logins(self, token: str, logins: list[str]) -> list[dict]:
        self._count("fetch_users_by_logins")
        self.batches.append(list(logins))
        if self.users_error is not None:
            raise self.users_error
        return [
            self.users.get(login) or {"id": f"id-{login}", "login": login, "display_name": login}
            for login in logins
        ]

    async def fetch_follower_count(self, token: str, broadcaster_id: str):
        self._count("fetch_follower_count")
        if broadcaster_id in self.follower_errors:
            raise TwitchAPIError("HTTP 500", status_code=500)
        return self.followers.get(broadcaster_id, 0)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store() -> FakePresenceStore:
    return FakePresenceStore()


@pytest.fixture
def credentials() -> FakeCredentialStore:
    return FakeCredentialStore()


@pytest.fixture
def api() -> FakeTwitchAPI:
    return FakeTwitchAPI()


def make_settings(**overrides) -> TrackerSettings:
    values = {
        "client_id": "cid",
        "client_secret": "secret",
        "database_url": "postgresql://localhost/chatwatch_test",
        "jwt_secret_key": "test-signing-key",
        "initial_poll_delay_seconds": 3600,
        "enrich_interval_seconds": 3600,
        **overrides,
    }
    return TrackerSettings(_env_file=None, **values)


def ready_tenant(session_id: str = "s1", channel: str = "somechannel", **kwargs) -> TenantAuthState:
    values = {
        "token": "tok",
        "moderator_id": "mod-1",
        "moderator_login": "modbot",
        "broadcaster_id": "b-1",
        "broadcaster_login": channel,
        **kwargs,
    }
    return TenantAuthState(session_id=session_id, **values)
