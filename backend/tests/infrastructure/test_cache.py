"""Response Caches — stable keys and shared clearing."""

from meethalf.infrastructure.cache import (
    ALL_CACHES, cache_key, clear_all, geocode_cache, time_midpoint_cache,
)


def test_key_ignores_parameter_order():
    assert cache_key("nearby", {"lat": 1, "lng": 2}) == cache_key("nearby", {"lng": 2, "lat": 1})


def test_key_differs_by_prefix_and_value():
    assert cache_key("geocode", {"a": 1}) != cache_key("reverse", {"a": 1})
    assert cache_key("geocode", {"a": 1}) != cache_key("geocode", {"a": 2})


def test_key_format():
    prefix, digest = cache_key("geocode", {"address": "Taipei"}).split(":")
    assert prefix == "geocode"
    assert len(digest) == 32


def test_time_midpoint_cache_lives_longer():
    assert time_midpoint_cache.ttl == 2 * geocode_cache.ttl


def test_clear_all_empties_every_cache():
    for cache in ALL_CACHES:
        cache["k"] = {"v": 1}
    clear_all()
    assert all(len(cache) == 0 for cache in ALL_CACHES)
