from typing import Dict, List, Any, Optional, Protocol, Callable
from dataclasses import dataclass
import logging
import time

from core.degrade import guarded_sync
from core.types import Feedback, SessionRecord

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A finished analysis result keyed by request fingerprint."""
    key: str
    result: Dict[str, Any]
    created_at: float
    ttl_seconds: float

    def is_fresh(self, now: float) -> bool:
        return now < self.created_at + self.ttl_seconds


class CacheStore(Protocol):
    def get(self, key: str) -> Optional[CacheEntry]: ...

    def put(self, key: str, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...

    def purge_expired(self, now: Optional[float] = None) -> int: ...

    def stats(self) -> Dict[str, int]: ...


class InMemoryCacheStore:
    """
    Process-local cache store.

    In production, this would be backed by Redis.
    """

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def put(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def purge_expired(self, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        expired = [k for k, e in self._entries.items() if not e.is_fresh(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> Dict[str, int]:
        return {"totalEntries": len(self._entries)}

    def clear(self) -> None:
        self._entries.clear()


class SessionCache:
    """
    TTL cache of analysis results in front of a CacheStore.

    Store errors count as a miss on read and a no-op on write. A stale
    entry found on read is dropped, and every write purges expired entries.
    """

    def __init__(self, store: CacheStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock
        self.hits = 0

    @staticmethod
    def fingerprint(raw_input: str) -> str:
        return raw_input

    def _lookup(self, raw_input: str) -> Optional[Dict[str, Any]]:
        key = self.fingerprint(raw_input)
        entry = self.store.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self.clock()):
            self.store.delete(key)
            return None
        return entry.result

    def get(self, raw_input: str) -> Optional[Dict[str, Any]]:
        result = guarded_sync("cache get", self._lookup, raw_input)
        if result is not None:
            self.hits += 1
            logger.info("Cache hit for %r", raw_input[:50])
        return result

    def put(self, raw_input: str, result: Dict[str, Any], ttl_seconds: float) -> None:
        key = self.fingerprint(raw_input)
        now = self.clock()
        purged = guarded_sync("cache purge", self.store.purge_expired, now, default=0)
        if purged:
            logger.debug("Purged %d expired cache entries", purged)
        entry = CacheEntry(key=key, result=result, created_at=now, ttl_seconds=ttl_seconds)
        guarded_sync("cache put", self.store.put, key, entry)

    def stats(self) -> Dict[str, int]:
        entries = guarded_sync("cache stats", lambda: self.store.stats()["totalEntries"], default=0)
        return {"totalEntries": entries, "totalHits": self.hits}


class MemoryStore:
    """
    In-memory storage for finished sessions and user feedback.

    In production, this would be backed by Redis or a database.
    """

    def __init__(self):
        self._sessions: Dict[str, SessionRecord] = {}
        self._feedback: List[Feedback] = []

    # Session methods
    def save_session(self, record: SessionRecord) -> None:
        """Save or update a finished session."""
        self._sessions[record.session_id] = record

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        return self._sessions.get(session_id)

    def list_sessions(self, limit: Optional[int] = None) -> List[SessionRecord]:
        """Sessions, newest first."""
        records = sorted(self._sessions.values(), key=lambda r: r.created_at, reverse=True)
        return records[:limit] if limit else records

    # Feedback methods
    def add_feedback(self, feedback: Feedback) -> None:
        self._feedback.append(feedback)

    def get_feedback(self) -> List[Feedback]:
        return list(self._feedback)

    # Utility methods
    def clear(self) -> None:
        """Clear all stored data."""
        self._sessions.clear()
        self._feedback.clear()

    def export_state(self) -> Dict[str, Any]:
        """Export current state as JSON-serializable dict."""
        return {
            "sessions": {sid: record.to_dict() for sid, record in self._sessions.items()},
            "feedback": [f.to_dict() for f in self._feedback],
        }


# Global store instances
memory_store = MemoryStore()
cache_store = InMemoryCacheStore()
