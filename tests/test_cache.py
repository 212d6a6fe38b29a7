"""Tests for storage/memory.py."""

from datetime import datetime, timedelta

from core.types import Feedback, SessionRecord
from storage.memory import CacheEntry, InMemoryCacheStore, MemoryStore, SessionCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class BrokenStore:
    def get(self, key):
        raise ConnectionError("cache backend down")

    def put(self, key, entry):
        raise ConnectionError("cache backend down")

    def delete(self, key):
        raise ConnectionError("cache backend down")

    def purge_expired(self, now=None):
        raise ConnectionError("cache backend down")

    def stats(self):
        raise ConnectionError("cache backend down")


def test_put_then_get_returns_result():
    cache = SessionCache(InMemoryCacheStore(), clock=FakeClock())
    cache.put("我有13万资金想做光伏项目", {"report": "可行"}, ttl_seconds=60)
    assert cache.get("我有13万资金想做光伏项目") == {"report": "可行"}


def test_fingerprint_is_the_raw_input():
    cache = SessionCache(InMemoryCacheStore(), clock=FakeClock())
    cache.put("光伏", {"report": "a"}, ttl_seconds=60)
    assert cache.get(" 光伏") is None
    assert SessionCache.fingerprint("光伏") == "光伏"


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = SessionCache(InMemoryCacheStore(), clock=clock)
    cache.put("q", {"report": "r"}, ttl_seconds=60)

    clock.now += 59
    assert cache.get("q") is not None
    clock.now += 1
    assert cache.get("q") is None


def test_stale_entry_is_dropped_on_read():
    clock = FakeClock()
    store = InMemoryCacheStore()
    cache = SessionCache(store, clock=clock)
    cache.put("q", {"report": "r"}, ttl_seconds=1)

    clock.now += 10
    assert cache.get("q") is None
    assert store.get("q") is None


def test_expired_entries_do_not_accumulate():
    clock = FakeClock()
    store = InMemoryCacheStore()
    cache = SessionCache(store, clock=clock)
    for i in range(1000):
        cache.put(f"问题{i}", {"report": str(i)}, ttl_seconds=1)
    assert store.stats()["totalEntries"] == 1000

    clock.now += 10
    cache.put("新问题", {"report": "new"}, ttl_seconds=1)
    assert store.stats()["totalEntries"] == 1

    clock.now += 10
    for i in range(5):
        cache.get(f"问题{i}")
    cache.get("新问题")
    assert store.stats()["totalEntries"] == 0


def test_store_errors_are_misses_and_no_ops():
    cache = SessionCache(BrokenStore(), clock=FakeClock())
    cache.put("q", {"report": "r"}, ttl_seconds=60)
    assert cache.get("q") is None
    assert cache.stats() == {"totalEntries": 0, "totalHits": 0}


def test_reads_leave_entries_untouched():
    store = InMemoryCacheStore()
    cache = SessionCache(store, clock=FakeClock())
    cache.put("a", {"report": "1"}, ttl_seconds=60)
    before = store.get("a")
    snapshot = (before.key, before.result, before.created_at, before.ttl_seconds)

    cache.get("a")
    cache.get("a")

    after = store.get("a")
    assert (after.key, after.result, after.created_at, after.ttl_seconds) == snapshot


def test_hits_are_counted_by_the_cache():
    store = InMemoryCacheStore()
    cache = SessionCache(store, clock=FakeClock())
    cache.put("a", {"report": "1"}, ttl_seconds=60)
    cache.put("b", {"report": "2"}, ttl_seconds=60)
    cache.get("a")
    cache.get("a")
    cache.get("missing")

    assert cache.stats() == {"totalEntries": 2, "totalHits": 2}
    assert store.stats() == {"totalEntries": 2}


def test_purge_expired():
    store = InMemoryCacheStore()
    store.put("old", CacheEntry("old", {}, created_at=0, ttl_seconds=10))
    store.put("new", CacheEntry("new", {}, created_at=100, ttl_seconds=10))

    assert store.purge_expired(now=105) == 1
    assert store.get("old") is None
    assert store.get("new") is not None

    store.clear()
    assert store.stats()["totalEntries"] == 0


class TestMemoryStore:

    def test_sessions_listed_newest_first(self):
        store = MemoryStore()
        start = datetime(2026, 1, 1)
        for i in range(3):
            store.save_session(SessionRecord(f"s{i}", f"问题{i}", "reverse", {}, created_at=start + timedelta(minutes=i)))

        assert [r.session_id for r in store.list_sessions()] == ["s2", "s1", "s0"]
        assert [r.session_id for r in store.list_sessions(limit=2)] == ["s2", "s1"]
        assert store.get_session("s0").user_input == "问题0"
        assert store.get_session("missing") is None

    def test_summary_truncates_input(self):
        record = SessionRecord("s", "长" * 150, "forward", {"report": "x"})
        assert len(record.summary()["input"]) == 100
        assert len(record.to_dict()["input"]) == 150

    def test_feedback_and_export(self):
        store = MemoryStore()
        store.save_session(SessionRecord("s", "q", "mixed", {"report": "x"}))
        store.add_feedback(Feedback(rating=5, comment="很有用", session_id="s"))

        state = store.export_state()
        assert state["sessions"]["s"]["result"] == {"report": "x"}
        assert state["feedback"][0]["rating"] == 5
        assert len(store.get_feedback()) == 1

        store.clear()
        assert store.list_sessions() == []
        assert store.get_feedback() == []
