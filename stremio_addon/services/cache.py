"""
Meta Cache
Caches for Cinemeta responses: in-process dict or Redis
"""
import json
import logging
import time
from typing import Dict, Optional, Tuple

import redis.asyncio as redis

from stremio_addon.models.meta import Meta

logger = logging.getLogger(__name__)

# (meta, unix timestamp of when it was cached)
CacheEntry = Tuple[Meta, float]


class InMemoryCache:
    """
    Dict based cache

    Doesn't persist anything, so every process restart means refetching.
    """

    def __init__(self):
        self._items: Dict[str, CacheEntry] = {}

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._items.get(key)

    async def set(self, key: str, meta: Meta) -> bool:
        self._items[key] = (meta, time.time())
        return True

    async def delete(self, key: str):
        self._items.pop(key, None)

    async def close(self):
        pass


class RedisCache:
    """Redis cache manager with async support"""

    def __init__(self, url: str, prefix: str = "cinemeta:", ttl: Optional[int] = None):
        self.url = url
        self.prefix = prefix
        self.ttl = ttl
        self._redis_client: Optional[redis.Redis] = None

    async def get_client(self) -> redis.Redis:
        """Get or create Redis client"""
        if self._redis_client is None:
            self._redis_client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True
            )
        return self._redis_client

    async def get(self, key: str) -> Optional[CacheEntry]:
        """
        Get meta from cache

        Args:
            key: Cache key (IMDb ID)

        Returns:
            Meta and its creation time, or None if not found
        """
        try:
            client = await self.get_client()
            value = await client.get(self.prefix + key)
            if not value:
                return None
            parsed = json.loads(value)
            return Meta.model_validate(parsed["meta"]), float(parsed["created"])
        except Exception as e:
            logger.error(f"Cache get error for key {key}: {e}")
            return None

    async def set(self, key: str, meta: Meta) -> bool:
        """
        Set meta in cache

        Returns:
            True if successful, False otherwise
        """
        try:
            client = await self.get_client()
            serialized = json.dumps({
                "meta": meta.model_dump(exclude_none=True),
                "created": time.time(),
            })
            if self.ttl:
                await client.setex(self.prefix + key, self.ttl, serialized)
            else:
                await client.set(self.prefix + key, serialized)
            return True
        except Exception as e:
            logger.error(f"Cache set error for key {key}: {e}")
            return False

    async def delete(self, key: str):
        """Delete meta from cache"""
        try:
            client = await self.get_client()
            await client.delete(self.prefix + key)
        except Exception as e:
            logger.error(f"Cache delete error for key {key}: {e}")

    async def close(self):
        """Close Redis connection"""
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None
