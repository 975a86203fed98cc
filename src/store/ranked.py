"""Ranked key-value store: named sets and sorted maps.

Two backends share the `RankedStore` interface: an in-process store for tests
and single-node runs, and a Redis-backed store. Every operation touches one
key and is atomic on its own; nothing here spans keys.
"""

from __future__ import annotations

import functools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Protocol, TypeVar

import redis


logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreUnavailable(RuntimeError):
    """The ranked store could not be reached or an operation failed."""


def _ranked(pairs: Iterable[tuple[str, float]], k: int) -> list[tuple[str, float]]:
    # Descending score, ties by member ascending.
    ordered = sorted(((str(m), float(s)) for m, s in pairs), key=lambda x: (-x[1], x[0]))
    return ordered[: max(0, int(k))]


class RankedStore(Protocol):
    def sadd(self, key: str, *members: str) -> int: ...

    def srem(self, key: str, *members: str) -> int: ...

    def smembers(self, key: str) -> set[str]: ...

    def sismember(self, key: str, member: str) -> bool: ...

    def scard(self, key: str) -> int: ...

    def sinter(self, *keys: str) -> set[str]: ...

    def replace_set(self, key: str, members: Iterable[str]) -> None: ...

    def zadd(self, key: str, member: str, score: float) -> None: ...

    def zscore(self, key: str, member: str) -> Optional[float]: ...

    def zrem(self, key: str, *members: str) -> int: ...

    def zcard(self, key: str) -> int: ...

    def ztop(self, key: str, k: int) -> list[tuple[str, float]]: ...

    def delete(self, *keys: str) -> int: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


class InMemoryRankedStore:
    """Process-local ranked store guarded by a single lock."""

    def __init__(self) -> None:
        self._sets: dict[str, set[str]] = {}
        self._zsets: dict[str, dict[str, float]] = {}
        self._lock = threading.Lock()
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise StoreUnavailable("in-memory store is closed")

    # ----- sets -----

    def sadd(self, key: str, *members: str) -> int:
        with self._lock:
            self._check_open()
            s = self._sets.setdefault(key, set())
            before = len(s)
            s.update(str(m) for m in members)
            return len(s) - before

    def srem(self, key: str, *members: str) -> int:
        with self._lock:
            self._check_open()
            s = self._sets.get(key)
            if not s:
                return 0
            removed = len(s & {str(m) for m in members})
            s.difference_update(str(m) for m in members)
            if not s:
                del self._sets[key]
            return removed

    def smembers(self, key: str) -> set[str]:
        with self._lock:
            self._check_open()
            return set(self._sets.get(key, set()))

    def sismember(self, key: str, member: str) -> bool:
        with self._lock:
            self._check_open()
            return str(member) in self._sets.get(key, set())

    def scard(self, key: str) -> int:
        with self._lock:
            self._check_open()
            return len(self._sets.get(key, set()))

    def sinter(self, *keys: str) -> set[str]:
        with self._lock:
            self._check_open()
            if not keys:
                return set()
            sets = [self._sets.get(k, set()) for k in keys]
            return set.intersection(*sets)

    def replace_set(self, key: str, members: Iterable[str]) -> None:
        new = {str(m) for m in members}
        with self._lock:
            self._check_open()
            if new:
                self._sets[key] = new
            else:
                self._sets.pop(key, None)

    # ----- sorted maps -----

    def zadd(self, key: str, member: str, score: float) -> None:
        with self._lock:
            self._check_open()
            self._zsets.setdefault(key, {})[str(member)] = float(score)

    def zscore(self, key: str, member: str) -> Optional[float]:
        with self._lock:
            self._check_open()
            return self._zsets.get(key, {}).get(str(member))

    def zrem(self, key: str, *members: str) -> int:
        with self._lock:
            self._check_open()
            z = self._zsets.get(key)
            if not z:
                return 0
            removed = 0
            for m in members:
                if z.pop(str(m), None) is not None:
                    removed += 1
            if not z:
                del self._zsets[key]
            return removed

    def zcard(self, key: str) -> int:
        with self._lock:
            self._check_open()
            return len(self._zsets.get(key, {}))

    def ztop(self, key: str, k: int) -> list[tuple[str, float]]:
        with self._lock:
            self._check_open()
            items = list(self._zsets.get(key, {}).items())
        return _ranked(items, k)

    # ----- housekeeping -----

    def delete(self, *keys: str) -> int:
        with self._lock:
            self._check_open()
            n = 0
            for k in keys:
                if self._sets.pop(k, None) is not None:
                    n += 1
                if self._zsets.pop(k, None) is not None:
                    n += 1
            return n

    def ping(self) -> bool:
        return not self._closed

    def close(self) -> None:
        with self._lock:
            self._closed = True


def _wrap_errors(fn: Callable[..., T]) -> Callable[..., T]:
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except redis.exceptions.RedisError as exc:
            raise StoreUnavailable(f"redis {fn.__name__} failed: {exc}") from exc

    return wrapper


class RedisRankedStore:
    """Ranked store on top of Redis sets and sorted sets."""

    def __init__(self, client: Any) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisRankedStore":
        client = redis.Redis.from_url(str(url), decode_responses=True, **kwargs)
        return cls(client)

    @_wrap_errors
    def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return int(self.client.sadd(key, *[str(m) for m in members]))

    @_wrap_errors
    def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return int(self.client.srem(key, *[str(m) for m in members]))

    @_wrap_errors
    def smembers(self, key: str) -> set[str]:
        return {str(m) for m in self.client.smembers(key)}

    @_wrap_errors
    def sismember(self, key: str, member: str) -> bool:
        return bool(self.client.sismember(key, str(member)))

    @_wrap_errors
    def scard(self, key: str) -> int:
        return int(self.client.scard(key))

    @_wrap_errors
    def sinter(self, *keys: str) -> set[str]:
        if not keys:
            return set()
        return {str(m) for m in self.client.sinter(list(keys))}

    @_wrap_errors
    def replace_set(self, key: str, members: Iterable[str]) -> None:
        new = [str(m) for m in members]
        pipe = self.client.pipeline(transaction=True)
        pipe.delete(key)
        if new:
            pipe.sadd(key, *new)
        pipe.execute()

    @_wrap_errors
    def zadd(self, key: str, member: str, score: float) -> None:
        self.client.zadd(key, {str(member): float(score)})

    @_wrap_errors
    def zscore(self, key: str, member: str) -> Optional[float]:
        score = self.client.zscore(key, str(member))
        return None if score is None else float(score)

    @_wrap_errors
    def zrem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return int(self.client.zrem(key, *[str(m) for m in members]))

    @_wrap_errors
    def zcard(self, key: str) -> int:
        return int(self.client.zcard(key))

    @_wrap_errors
    def ztop(self, key: str, k: int) -> list[tuple[str, float]]:
        k = int(k)
        if k <= 0:
            return []
        head = self.client.zrevrange(key, 0, k - 1, withscores=True)
        if len(head) < k:
            return _ranked(head, k)
        # Redis orders ties by member descending; pull the whole tie band at
        # the cut-off score so the member-ascending tie-break is honoured.
        cutoff = float(head[-1][1])
        band = self.client.zrevrangebyscore(key, "+inf", cutoff, withscores=True)
        return _ranked(band, k)

    @_wrap_errors
    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self.client.delete(*keys))

    @_wrap_errors
    def ping(self) -> bool:
        return bool(self.client.ping())

    def close(self) -> None:
        try:
            self.client.close()
        except redis.exceptions.RedisError:
            logger.warning("Error while closing redis client", exc_info=True)


@dataclass(frozen=True)
class StoreConfig:
    backend: str = "memory"
    url: str = "redis://localhost:6379/0"
    namespace: str = "recommendable"


def open_store(cfg: StoreConfig) -> RankedStore:
    """Construct the configured ranked store; the caller owns and closes it."""
    backend = str(cfg.backend).lower()
    if backend == "memory":
        logger.info("Opening in-memory ranked store")
        return InMemoryRankedStore()
    if backend == "redis":
        logger.info("Opening redis ranked store at %s", cfg.url)
        store = RedisRankedStore.from_url(cfg.url)
        store.ping()
        return store
    raise ValueError(f"store.backend must be 'memory' or 'redis', got {cfg.backend!r}")
