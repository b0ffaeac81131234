"""Tests for the metadata cache and the cached metadata provider."""

import pytest

from apps.core.cache import CachedMetadataProvider, metadata_cache

from conftest import FakeMetadata, make_metadata


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_entries_expire() -> None:
    clock = Clock()
    cache = metadata_cache(ttl_seconds=10, timer=clock)
    cache["a"] = 1

    assert cache.get("a") == 1
    clock.now = 10
    assert cache.get("a") is None
    assert "a" not in cache


def test_least_recently_used_entry_evicted_when_full() -> None:
    cache = metadata_cache(ttl_seconds=10, maxsize=2)
    cache["a"] = 1
    cache["b"] = 2
    cache["c"] = 3

    assert "a" not in cache
    assert len(cache) == 2


@pytest.mark.asyncio
async def test_cached_provider_hits_source_once() -> None:
    source = FakeMetadata({1: make_metadata(1, 10)})
    provider = CachedMetadataProvider(source, metadata_cache(ttl_seconds=60))

    first = await provider.get_show_metadata(1)
    second = await provider.get_show_metadata(1)

    assert first == second
    assert source.calls == [1]

    assert provider.invalidate_show(1) == 1
    await provider.get_show_metadata(1)
    assert source.calls == [1, 1]


@pytest.mark.asyncio
async def test_cached_provider_refetches_after_ttl() -> None:
    clock = Clock()
    source = FakeMetadata({1: make_metadata(1, 10)})
    provider = CachedMetadataProvider(source, metadata_cache(ttl_seconds=60, timer=clock))

    await provider.get_show_metadata(1)
    clock.now = 61
    await provider.get_show_metadata(1)

    assert source.calls == [1, 1]


@pytest.mark.asyncio
async def test_invalidate_show_leaves_other_shows() -> None:
    source = FakeMetadata({1: make_metadata(1, 10), 2: make_metadata(2, 6)})
    provider = CachedMetadataProvider(source, metadata_cache(ttl_seconds=60))

    await provider.get_show_metadata(1)
    await provider.get_show_metadata(2)
    await provider.get_episode_details(1, 1, 2)

    assert provider.invalidate_show(1) == 2
    assert provider.clear() == 1
