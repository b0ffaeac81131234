import logging

from cachetools import TTLCache

logger = logging.getLogger(__name__)


def metadata_cache(ttl_seconds: float, maxsize: int = 1000, timer=None) -> TTLCache:
    """TTL cache for show metadata. `timer` lets tests move time without sleeping."""
    if timer is None:
        return TTLCache(maxsize=maxsize, ttl=ttl_seconds)
    return TTLCache(maxsize=maxsize, ttl=ttl_seconds, timer=timer)


class CachedMetadataProvider:
    """
    Wraps a metadata source (anything with `get_show_metadata`) with a
    cachetools TTLCache. The owner creates the cache and passes it in;
    invalidation is explicit.
    """

    def __init__(self, source, cache: TTLCache):
        self.source = source
        self.cache = cache

    async def get_show_metadata(self, show_id: int):
        key = ("show", show_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        metadata = await self.source.get_show_metadata(show_id)
        self.cache[key] = metadata
        return metadata

    async def get_episode_details(self, show_id: int, season_number: int, episode_number: int):
        key = ("episode", show_id, season_number, episode_number)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        details = await self.source.get_episode_details(show_id, season_number, episode_number)
        if details is not None:
            self.cache[key] = details
        return details

    def invalidate_show(self, show_id: int) -> int:
        self.cache.expire()
        keys = [k for k in list(self.cache) if k[1] == show_id]
        for key in keys:
            self.cache.pop(key, None)
        logger.info(f"[MetadataCache] Invalidated {len(keys)} entries for show {show_id}")
        return len(keys)

    def clear(self) -> int:
        self.cache.expire()
        count = len(self.cache)
        self.cache.clear()
        return count

    async def close(self) -> None:
        close = getattr(self.source, "close", None)
        if close is not None:
            await close()
