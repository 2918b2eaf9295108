from __future__ import annotations

import asyncio

from conftest import FakeCredentialStore, make_settings, ready_tenant
from shared.models import TenantCredentials
from tracker.registry import TenantRegistry
from tracker.state import TenantAuthState, TenantStatus


def test_add_replaces_state_for_same_session():
    registry = TenantRegistry()
    registry.add(TenantAuthState(session_id="abc"))
    replacement = ready_tenant("abc")

    registry.add(replacement)

    assert len(registry) == 1
    assert "abc" in registry
    assert registry.get("abc") is replacement
    assert registry.remove("abc").status is TenantStatus.AUTHENTICATED
    assert registry.get("abc") is None


def test_restore_recomputes_presence_from_open_sessions(store, clock):
    asyncio.run(store.event_join("alice", clock.now, "chan"))
    asyncio.run(store.event_join("bob", clock.now, "chan"))
    asyncio.run(store.event_leave("bob", clock.now + 1000, "chan"))
    creds = FakeCredentialStore(
        [
            TenantCredentials(
                session_id="s1",
                token="tok",
                refresh_token="r1",
                moderator_id="m",
                broadcaster_id="b",
                broadcaster_login="chan",
                scopes=["moderator:read:chatters"],
            ),
            TenantCredentials(session_id="s2"),
        ]
    )
    registry = TenantRegistry()

    restored = asyncio.run(registry.restore(creds, store))

    assert restored == 2
    state = registry.get("s1")
    assert state.presence == {"alice"}
    assert state.is_ready
    assert state.scopes == ["moderator:read:chatters"]
    assert registry.get("s2").presence == set()


def test_enrichment_token_skips_degraded_tenants():
    registry = TenantRegistry()
    registry.add(TenantAuthState(session_id="anon"))
    registry.add(ready_tenant("s1", token="bad", last_error="HTTP 401"))
    registry.add(ready_tenant("s2", token="good"))

    assert registry.enrichment_token() == "good"

    registry.remove("s2")
    assert registry.enrichment_token() is None


def test_seed_static_registers_configured_tenant(store, clock):
    asyncio.run(store.event_join("viewer", clock.now, "mychannel"))
    settings = make_settings(
        static_access_token="env-token",
        static_moderator_id="m1",
        static_broadcaster_id="b1",
        static_broadcaster_login=" MyChannel ",
    )
    registry = TenantRegistry()

    state = asyncio.run(registry.seed_static(settings, store))

    assert state.session_id == "static"
    assert state.broadcaster_login == "mychannel"
    assert state.presence == {"viewer"}
    assert state.is_ready


def test_seed_static_prefers_persisted_session(store):
    settings = make_settings(
        static_access_token="env-token",
        static_moderator_id="m1",
        static_broadcaster_id="b1",
        static_broadcaster_login="mychannel",
    )
    registry = TenantRegistry()
    registry.add(ready_tenant("static", token="refreshed"))

    assert asyncio.run(registry.seed_static(settings, store)) is None
    assert registry.get("static").token == "refreshed"


def test_seed_static_requires_complete_config(store):
    registry = TenantRegistry()

    assert asyncio.run(registry.seed_static(make_settings(static_access_token="x"), store)) is None
    assert len(registry) == 0


def test_enrichment_token_skips_tenants_not_being_polled():
    registry = TenantRegistry()
    registry.add(TenantAuthState(session_id="half", token="idle-token", moderator_id="m"))
    registry.add(ready_tenant("s1", token="good"))

    assert registry.enrichment_token() == "good"
