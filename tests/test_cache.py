"""Tests for the TTL cache."""

from __future__ import annotations

import pytest

from electrolux_api import Cache

from .conftest import APPLIANCE_ID, FakeClock


def test_cache_key() -> None:
    """Test the keys derived from an appliance id."""
    keys = Cache.cache_key(APPLIANCE_ID)

    assert keys.state == f"{APPLIANCE_ID}:state"
    assert keys.auto_discovery == f"{APPLIANCE_ID}:auto-discovery"


def test_get_missing_key() -> None:
    """Test that an unknown key reads as None."""
    cache = Cache()

    assert cache.get("nope") is None
    assert cache.has("nope") is False


def test_values_are_isolated_from_callers() -> None:
    """Test that mutating a stored or returned value does not alter the cache."""
    cache = Cache()
    value = {"mode": "cool", "nested": {"rssi": -48}}

    cache.set("key", value)
    value["nested"]["rssi"] = 0
    returned = cache.get("key")
    returned["mode"] = "heat"

    assert cache.get("key") == {"mode": "cool", "nested": {"rssi": -48}}


def test_entry_expires_after_ttl() -> None:
    """Test that an entry is gone once the TTL has passed."""
    clock = FakeClock()
    cache = Cache(ttl=60, timer=clock)
    cache.set("key", 1)

    clock.advance(59)
    assert cache.has("key")

    clock.advance(60)
    assert cache.get("key") is None
    assert len(cache) == 0


def test_read_extends_ttl() -> None:
    """Test that a read resets the TTL when reset_ttl is enabled."""
    clock = FakeClock()
    cache = Cache(ttl=60, timer=clock)
    cache.set("key", 1)

    clock.advance(50)
    assert cache.get("key") == 1
    clock.advance(50)

    assert cache.get("key") == 1


def test_read_does_not_extend_ttl_when_disabled() -> None:
    """Test the fixed TTL mode."""
    clock = FakeClock()
    cache = Cache(ttl=60, reset_ttl=False, timer=clock)
    cache.set("key", 1)

    clock.advance(50)
    cache.get("key")
    clock.advance(50)

    assert cache.get("key") is None


def test_least_recently_used_entry_is_evicted() -> None:
    """Test eviction order once max_size is reached."""
    cache = Cache(max_size=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")

    cache.set("c", 3)

    assert cache.has("a")
    assert not cache.has("b")
    assert cache.has("c")


def test_delete() -> None:
    """Test removing a key, including one that does not exist."""
    cache = Cache()
    cache.set("key", 1)

    cache.delete("key").delete("missing")

    assert not cache.has("key")


def test_match_by_value_stores_new_value() -> None:
    """Test that the first value is stored and reported as not matching."""
    cache = Cache()
    discovery = {"name": "Bedroom AC", "modes": ["cool", "off"]}

    assert cache.match_by_value("key", discovery) is False
    assert cache.get("key") == discovery


def test_match_by_value_structural_equality() -> None:
    """Test that an equal value matches regardless of key order."""
    cache = Cache()
    cache.set("key", {"a": 1, "b": [1, 2]})

    assert cache.match_by_value("key", {"b": [1, 2], "a": 1}) is True


def test_match_by_value_replaces_changed_value() -> None:
    """Test that a changed value is stored and reported as not matching."""
    cache = Cache()
    cache.set("key", {"a": 1})

    assert cache.match_by_value("key", {"a": 2}) is False
    assert cache.get("key") == {"a": 2}


def test_match_by_value_booleans_differ_from_numbers() -> None:
    """Test that True replaces a cached 1 instead of matching it."""
    cache = Cache()

    assert cache.match_by_value("key", {"on": 1}) is False
    assert cache.match_by_value("key", {"on": True}) is False
    assert cache.get("key") == {"on": True}
    assert cache.get("key")["on"] is True


def test_match_by_value_null() -> None:
    """Test that a stored null is a present value, not a missing key."""
    cache = Cache()

    assert cache.match_by_value("key", None) is False
    assert cache.match_by_value("key", None) is True
    assert cache.match_by_value("key", {"a": 1}) is False


def test_match_by_value_refreshes_recency() -> None:
    """Test that a matching value counts as an access for eviction."""
    cache = Cache(max_size=2)
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.match_by_value("a", 1) is True
    cache.set("c", 3)

    assert cache.has("a")
    assert not cache.has("b")


def test_max_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        Cache(max_size=0)
