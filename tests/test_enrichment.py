from __future__ import annotations

import asyncio

import pytest

from tracker.enrichment import BATCH_SIZE, EnrichmentQueue
from tracker.errors import TwitchAPIError


def _queue(api, store, clock, token="tok"):
    return EnrichmentQueue(api, store, lambda: token, clock)


def test_enqueue_dedupes_and_lowercases(api, store, clock):
    queue = _queue(api, store, clock)

    queue.enqueue(["Alice", "alice", "ALICE", "", None, "bob"])

    assert queue.stats() == {"queued": 2, "running": False}
    assert asyncio.run(queue.drain()) == 2
    assert sorted(api.batches[0]) == ["alice", "bob"]
    assert api.calls["fetch_users_by_logins"] == 1


def test_follower_failure_is_isolated_per_user(api, store, clock):
    queue = _queue(api, store, clock)
    api.followers = {"id-a": 10, "id-c": 30}
    api.follower_errors.add("id-b")
    queue.enqueue(["a", "b", "c"])

    saved = asyncio.run(queue.drain())

    assert saved == 3
    assert store.profiles["a"].follower_count == 10
    assert store.profiles["b"].follower_count is None
    assert store.profiles["c"].follower_count == 30
    assert store.profiles["b"].updated_at == clock.now


def test_drain_takes_at_most_one_batch(api, store, clock):
    queue = _queue(api, store, clock)
    queue.enqueue(f"user{i}" for i in range(BATCH_SIZE + 7))

    asyncio.run(queue.drain())
    assert len(api.batches[0]) == BATCH_SIZE
    assert queue.stats()["queued"] == 7

    asyncio.run(queue.drain())
    assert len(api.batches[1]) == 7
    assert queue.stats()["queued"] == 0


def test_drain_is_not_reentrant(api, store, clock):
    queue = _queue(api, store, clock)
    release = asyncio.Event()
    original = api.fetch_users_by_logins

    async def slow_fetch(token, logins):
        await release.wait()
        return await original(token, logins)

    api.fetch_users_by_logins = slow_fetch
    queue.enqueue(["a", "b"])

    async def scenario():
        first = asyncio.create_task(queue.drain())
        await asyncio.sleep(0)
        assert queue.stats()["running"] is True
        queue.enqueue(["c"])
        assert await queue.drain() == 0
        release.set()
        return await first

    assert asyncio.run(scenario()) == 2
    assert queue.stats() == {"queued": 1, "running": False}


def test_guard_released_after_lookup_failure(api, store, clock):
    queue = _queue(api, store, clock)
    api.users_error = TwitchAPIError("HTTP 500", status_code=500)
    queue.enqueue(["a"])

    with pytest.raises(TwitchAPIError):
        asyncio.run(queue.drain())

    assert queue.stats() == {"queued": 0, "running": False}

    api.users_error = None
    queue.enqueue(["b"])
    assert asyncio.run(queue.drain()) == 1


def test_no_token_leaves_queue_intact(api, store, clock):
    queue = _queue(api, store, clock, token=None)
    queue.enqueue(["a", "b"])

    assert asyncio.run(queue.drain()) == 0
    assert api.calls == {}
    assert queue.stats()["queued"] == 2


def test_empty_queue_makes_no_calls(api, store, clock):
    queue = _queue(api, store, clock)

    assert asyncio.run(queue.drain()) == 0
    assert api.calls == {}


def test_unknown_logins_are_dropped(api, store, clock):
    queue = _queue(api, store, clock)

    async def only_known(token, logins):
        api.batches.append(list(logins))
        return [{"id": "1", "login": "Known", "display_name": "Known"}]

    api.fetch_users_by_logins = only_known
    queue.enqueue(["known", "deleted_user"])

    assert asyncio.run(queue.drain()) == 1
    assert set(store.profiles) == {"known"}
    assert queue.stats()["queued"] == 0
