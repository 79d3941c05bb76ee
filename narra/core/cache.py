"""In-process TTL caches: a generic store and the per-user authorization cache."""
import threading
import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

AUTH_CACHE_TTL_SEC = 30 * 60


class TTLCache:
    """Key/value map whose entries expire a fixed number of seconds after they are written.

    Expiry is checked lazily on read; purge_expired() sweeps stale entries opportunistically.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}

    def _is_expired(self, written_at: float, now: float) -> bool:
        return now - written_at > self.ttl_seconds

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, written_at = entry
            if self._is_expired(written_at, self._clock()):
                del self._entries[key]
                return None
            return value

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock())

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [k for k, (_, written_at) in self._entries.items() if self._is_expired(written_at, now)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass(frozen=True)
class UserAccess:
    plan_id: Optional[str]
    is_admin: bool
    timestamp: float


class AuthorizationCache:
    """user_id -> (plan_id, is_admin, timestamp), consulted by the request gate.

    Any write path that changes a user's role or plan must call delete() so the
    next request re-reads the database instead of serving a stale entry.
    """

    def __init__(self, ttl_seconds: float = AUTH_CACHE_TTL_SEC, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._store = TTLCache(ttl_seconds, clock=clock)

    @property
    def ttl_seconds(self) -> float:
        return self._store.ttl_seconds

    def get(self, user_id: str) -> Optional[UserAccess]:
        return self._store.get(user_id)

    def set(self, user_id: str, plan_id: Optional[str], is_admin: bool) -> UserAccess:
        access = UserAccess(plan_id=plan_id, is_admin=is_admin, timestamp=self._clock())
        self._store.set(user_id, access)
        return access

    def delete(self, user_id: str, reason: Optional[str] = None) -> None:
        self._store.delete(user_id)
        logger.info(f"Cleared authorization cache for user {user_id}{': ' + reason if reason else ''}")

    def delete_many(self, user_ids: Iterable[str], reason: Optional[str] = None) -> int:
        count = 0
        for user_id in user_ids:
            self._store.delete(user_id)
            count += 1
        logger.info(f"Cleared authorization cache for {count} users{': ' + reason if reason else ''}")
        return count

    def is_cached(self, user_id: str) -> bool:
        return user_id in self._store

    def cleanup_expired(self) -> int:
        return self._store.purge_expired()

    def age_seconds(self, user_id: str) -> Optional[float]:
        access = self.get(user_id)
        if access is None:
            return None
        return self._clock() - access.timestamp
