# Key-value storage for OAuth2 state.
# Created: 2026-10-02
#
# Every piece of cross-request state (PKCE sessions, authorization codes,
# revocation marks, users) lives behind KeyValueStore so that several stateless
# server instances can share it. MemoryStore is for tests and single-process
# development; RedisStore is the production backend.

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

import redis

from tokenwarden.api.oauth2.errors import StoreError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """TTL-capable key-value store. All TTLs are in seconds.

    Implementations raise :class:`StoreError` on infrastructure failure and
    must never report such a failure as a missing key.
    """

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    @abstractmethod
    def set_if_absent(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Atomically write *key* only if it does not exist. Returns True if written."""

    @abstractmethod
    def pop(self, key: str) -> str | None:
        """Atomically read and delete *key*."""

    @abstractmethod
    def delete(self, *keys: str) -> int: ...

    @abstractmethod
    def add_member(self, key: str, member: str, ttl: int | None = None) -> None:
        """Add *member* to the set at *key*, refreshing the set's TTL."""

    @abstractmethod
    def remove_members(self, key: str, *members: str) -> int:
        """Remove *members* from the set at *key*. Returns how many were present."""

    @abstractmethod
    def members(self, key: str) -> set[str]: ...

    @abstractmethod
    def set_many(self, items: Iterable[tuple[str, str, int | None]]) -> None:
        """Write several ``(key, value, ttl)`` entries as one atomic unit."""

    @abstractmethod
    def ping(self) -> bool: ...

    def close(self) -> None:  # noqa: B027
        pass


class MemoryStore(KeyValueStore):
    """In-process store with lazy expiry.

    ``clock`` is injectable so tests can move time forward. Using a string
    operation on a set key (or the reverse) raises StoreError, as Redis
    answers WRONGTYPE.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._values: dict[str, str] = {}
        self._sets: dict[str, set[str]] = {}
        self._expiry: dict[str, float] = {}
        self._lock = threading.RLock()

    def _expired(self, key: str) -> bool:
        deadline = self._expiry.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._values.pop(key, None)
            self._sets.pop(key, None)
            self._expiry.pop(key, None)
            return True
        return False

    def _exists(self, key: str) -> bool:
        if self._expired(key):
            return False
        return key in self._values or key in self._sets

    def _require_string(self, op: str, key: str) -> None:
        if key in self._sets:
            raise StoreError(f"store {op} failed: {key} holds a set")

    def _require_set(self, op: str, key: str) -> None:
        if key in self._values:
            raise StoreError(f"store {op} failed: {key} holds a string")

    def _set_ttl(self, key: str, ttl: int | None) -> None:
        if ttl is None:
            self._expiry.pop(key, None)
        else:
            self._expiry[key] = self._clock() + max(ttl, 1)

    def get(self, key: str) -> str | None:
        with self._lock:
            if self._expired(key):
                return None
            self._require_string("get", key)
            return self._values.get(key)

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        with self._lock:
            self._sets.pop(key, None)
            self._values[key] = value
            self._set_ttl(key, ttl)

    def set_if_absent(self, key: str, value: str, ttl: int | None = None) -> bool:
        with self._lock:
            if self._exists(key):
                return False
            self._values[key] = value
            self._set_ttl(key, ttl)
            return True

    def pop(self, key: str) -> str | None:
        with self._lock:
            if self._expired(key):
                return None
            self._require_string("pop", key)
            self._expiry.pop(key, None)
            return self._values.pop(key, None)

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._exists(key):
                    removed += 1
                self._values.pop(key, None)
                self._sets.pop(key, None)
                self._expiry.pop(key, None)
        return removed

    def add_member(self, key: str, member: str, ttl: int | None = None) -> None:
        with self._lock:
            if not self._expired(key):
                self._require_set("add_member", key)
            self._sets.setdefault(key, set()).add(member)
            self._set_ttl(key, ttl)

    def remove_members(self, key: str, *members: str) -> int:
        with self._lock:
            if self._expired(key):
                return 0
            self._require_set("remove_members", key)
            current = self._sets.get(key)
            if not current:
                return 0
            removed = len(current.intersection(members))
            current.difference_update(members)
            if not current:
                # Redis drops a set once its last member is removed
                del self._sets[key]
                self._expiry.pop(key, None)
            return removed

    def members(self, key: str) -> set[str]:
        with self._lock:
            if self._expired(key):
                return set()
            self._require_set("members", key)
            return set(self._sets.get(key, ()))

    def set_many(self, items: Iterable[tuple[str, str, int | None]]) -> None:
        with self._lock:
            for key, value, ttl in items:
                self._sets.pop(key, None)
                self._values[key] = value
                self._set_ttl(key, ttl)

    def ping(self) -> bool:
        return True


class RedisStore(KeyValueStore):
    """Redis-backed store. Every ``redis.RedisError`` surfaces as StoreError."""

    def __init__(self, client: redis.Redis):
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> RedisStore:
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def _call(self, op: str, fn: Callable, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except redis.RedisError as exc:
            logger.error("Redis %s failed: %s", op, exc)
            raise StoreError(f"store {op} failed") from exc

    def get(self, key: str) -> str | None:
        return self._call("get", self._redis.get, key)

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self._call("set", self._redis.set, key, value, ex=ttl)

    def set_if_absent(self, key: str, value: str, ttl: int | None = None) -> bool:
        return bool(self._call("set_if_absent", self._redis.set, key, value, ex=ttl, nx=True))

    def pop(self, key: str) -> str | None:
        return self._call("pop", self._redis.getdel, key)

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self._call("delete", self._redis.delete, *keys))

    def add_member(self, key: str, member: str, ttl: int | None = None) -> None:
        def _add() -> None:
            pipe = self._redis.pipeline(transaction=True)
            pipe.sadd(key, member)
            if ttl is not None:
                pipe.expire(key, ttl)
            pipe.execute()

        self._call("add_member", _add)

    def remove_members(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return int(self._call("remove_members", self._redis.srem, key, *members))

    def members(self, key: str) -> set[str]:
        return set(self._call("members", self._redis.smembers, key))

    def set_many(self, items: Iterable[tuple[str, str, int | None]]) -> None:
        items = list(items)
        if not items:
            return

        def _write() -> None:
            pipe = self._redis.pipeline(transaction=True)
            for key, value, ttl in items:
                pipe.set(key, value, ex=ttl)
            pipe.execute()

        self._call("set_many", _write)

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False

    def close(self) -> None:
        self._redis.close()


def create_store(url: str | None) -> KeyValueStore:
    """Build a store from a URL: unset or ``memory://`` -> MemoryStore, else Redis."""
    if not url or url.startswith("memory://"):
        logger.info("Using in-memory store (single process only)")
        return MemoryStore()
    if url.startswith(("redis://", "rediss://", "unix://")):
        logger.info("Using Redis store")
        return RedisStore.from_url(url)
    raise ValueError(f"Unsupported store_url scheme: {url}")
