from __future__ import annotations

import pytest
import redis

from src.store.ranked import InMemoryRankedStore, RedisRankedStore, StoreConfig, StoreUnavailable, open_store


def test_ztop_orders_descending_with_member_tiebreak(store) -> None:
    for member, score in [("c", 0.5), ("a", 0.5), ("b", 0.9), ("d", -1.0), ("e", 0.5)]:
        store.zadd("z", member, score)

    assert store.ztop("z", 10) == [("b", 0.9), ("a", 0.5), ("c", 0.5), ("e", 0.5), ("d", -1.0)]
    # The cut falls inside the 0.5 tie band.
    assert store.ztop("z", 3) == [("b", 0.9), ("a", 0.5), ("c", 0.5)]
    assert store.ztop("z", 0) == []
    assert store.ztop("missing", 3) == []


def test_ztop_returns_at_most_k_entries(store) -> None:
    for i in range(20):
        store.zadd("z", f"m{i:02d}", float(i % 4))

    top = store.ztop("z", 7)
    assert len(top) == 7
    scores = [s for _, s in top]
    assert scores == sorted(scores, reverse=True)
    assert top == store.ztop("z", 7)


def test_zadd_upserts_and_zscore_reports_absence(store) -> None:
    assert store.zscore("z", "x") is None
    store.zadd("z", "x", 1.0)
    store.zadd("z", "x", -0.25)
    assert store.zscore("z", "x") == -0.25
    assert store.zcard("z") == 1
    assert store.zrem("z", "x") == 1
    assert store.zscore("z", "x") is None


def test_set_primitives(store) -> None:
    store.sadd("s1", "a", "b", "c")
    store.sadd("s2", "b", "c", "d")

    assert store.sinter("s1", "s2") == {"b", "c"}
    assert store.sinter("s1", "empty") == set()
    assert store.scard("s1") == 3
    assert store.sismember("s1", "a")
    assert not store.sismember("s2", "a")

    store.replace_set("s1", ["x"])
    assert store.smembers("s1") == {"x"}
    store.replace_set("s1", [])
    assert store.smembers("s1") == set()
    assert store.srem("s2", "b", "zzz") == 1


def test_closed_memory_store_is_unavailable() -> None:
    store = InMemoryRankedStore()
    store.close()
    with pytest.raises(StoreUnavailable):
        store.smembers("s")


class _DownClient:
    def __getattr__(self, name: str):
        def fail(*args, **kwargs):
            raise redis.exceptions.ConnectionError("connection refused")

        return fail


def test_redis_errors_surface_as_store_unavailable() -> None:
    store = RedisRankedStore(_DownClient())
    with pytest.raises(StoreUnavailable):
        store.zscore("z", "x")
    with pytest.raises(StoreUnavailable):
        store.sinter("a", "b")


def test_open_store_rejects_unknown_backend() -> None:
    assert isinstance(open_store(StoreConfig(backend="memory")), InMemoryRankedStore)
    with pytest.raises(ValueError):
        open_store(StoreConfig(backend="cassandra"))
