"""Tests for the TTL cache."""

from __future__ import annotations

import pytest

from scanward.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_get_and_set():
    cache: TTLCache[int] = TTLCache()
    cache.set("a", 1)
    assert cache.get("a") == 1
    assert "a" in cache
    assert cache.get("missing") is None


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(ttl=60, clock=clock)
    cache.set("k", "v")

    clock.now += 59
    assert cache.get("k") == "v"

    clock.now += 1
    assert cache.get("k") is None
    assert "k" not in cache


def test_stale_value_survives_expiry():
    clock = FakeClock()
    cache: TTLCache[str] = TTLCache(ttl=10, clock=clock)
    cache.set("k", "v")
    clock.now += 3600
    assert cache.get("k") is None
    assert cache.get_stale("k") == "v"


def test_capacity_evicts_least_recently_used():
    cache: TTLCache[int] = TTLCache(capacity=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")  # a is now most recent
    cache.set("c", 3)
    assert len(cache) == 2
    assert cache.get_stale("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_no_ttl_never_expires():
    clock = FakeClock()
    cache: TTLCache[int] = TTLCache(ttl=None, clock=clock)
    cache.set("a", 1)
    clock.now += 10**9
    assert cache.get("a") == 1


def test_empty_list_is_a_hit():
    cache: TTLCache[list] = TTLCache()
    cache.set("clean", [])
    assert cache.get("clean") == []
    assert "clean" in cache


def test_delete_and_clear():
    cache: TTLCache[int] = TTLCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.delete("a")
    cache.delete("never-set")
    assert cache.get("a") is None
    cache.clear()
    assert len(cache) == 0


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        TTLCache(capacity=0)
