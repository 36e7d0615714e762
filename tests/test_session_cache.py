from __future__ import annotations

from datetime import datetime

from datastore.session_cache import SessionCache


def test_inactive_session_always_misses() -> None:
    cache = SessionCache()
    cache.put("key", 1)
    cache.mark_synced(datetime(2025, 3, 10))

    assert cache.active is False
    assert cache.get("key") is None
    assert cache.last_sync_at is None


def test_session_lifecycle() -> None:
    cache = SessionCache()
    synced = datetime(2025, 3, 10, 12, 0)

    cache.start()
    cache.put("key", 1)
    cache.mark_synced(synced)
    assert cache.get("key") == 1
    assert cache.last_sync_at == synced

    cache.invalidate()
    assert cache.active is True
    assert cache.get("key") is None
    assert cache.last_sync_at == synced

    cache.clear()
    assert cache.active is False
    assert cache.last_sync_at is None


def test_restart_begins_clean() -> None:
    cache = SessionCache()
    cache.start()
    cache.put("key", 1)

    cache.start()

    assert cache.get("key") is None
