# services/dedupe.py
"""
Idempotency store for webhook payment ids.

Both backends expose one atomic primitive, add_if_absent(key): True the first
time a key is seen, False afterwards. The in-memory store is the default and
lives on the Flask app (app.extensions), so each app owns its own set. The
Redis store uses SET NX and is only needed when several processes share
notifications.
"""

from __future__ import annotations
import logging
import threading
from typing import Any, Mapping, Protocol, Set

log = logging.getLogger(__name__)

KEY_PREFIX = "webhook:seen"


class DedupeStore(Protocol):
    def add_if_absent(self, key: str) -> bool:
        ...

    def discard(self, key: str) -> None:
        ...

    def __contains__(self, key: str) -> bool:
        ...


class MemoryDedupeStore:
    """Unbounded process-local set. Entries are never evicted."""

    def __init__(self) -> None:
        self._seen: Set[str] = set()
        self._lock = threading.Lock()

    def add_if_absent(self, key: str) -> bool:
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True

    def discard(self, key: str) -> None:
        with self._lock:
            self._seen.discard(key)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)


class RedisDedupeStore:
    """Shared store. ttl_sec=0 keeps keys forever."""

    def __init__(self, client, ttl_sec: int = 0, prefix: str = KEY_PREFIX) -> None:
        self.client = client
        self.ttl_sec = int(ttl_sec or 0)
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def add_if_absent(self, key: str) -> bool:
        # SET NX answers None when the key already existed
        was_set = self.client.set(self._key(key), "1", nx=True,
                                  ex=self.ttl_sec or None)
        return bool(was_set)

    def discard(self, key: str) -> None:
        self.client.delete(self._key(key))

    def __contains__(self, key: str) -> bool:
        return bool(self.client.exists(self._key(key)))


def get_dedupe_store(cfg: Mapping[str, Any]) -> DedupeStore:
    name = (cfg.get("DEDUPE_BACKEND") or "memory").lower()
    if name == "memory":
        return MemoryDedupeStore()
    if name == "redis":
        import redis

        url = cfg.get("REDIS_URL") or "redis://localhost:6379/0"
        log.info("Webhook dedupe backed by Redis")
        return RedisDedupeStore(redis.Redis.from_url(url, decode_responses=True),
                                ttl_sec=int(cfg.get("DEDUPE_TTL_SEC") or 0))
    raise RuntimeError(f"Unknown DEDUPE_BACKEND: {name}")
