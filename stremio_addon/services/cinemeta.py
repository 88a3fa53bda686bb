"""
Cinemeta API Client
Looks up movie / TV show names for IMDb IDs, with a long-lived cache
"""
import asyncio
import logging
import time
from typing import Any, Dict, Optional, Protocol, Union

import aiohttp
from pydantic import ValidationError

from stremio_addon.core.errors import MetaFetchError
from stremio_addon.models.meta import Meta
from stremio_addon.services.cache import InMemoryCache, RedisCache

logger = logging.getLogger(__name__)


class MetaFetcher(Protocol):
    """Anything that can look up movies and TV shows by IMDb ID"""

    async def get_movie(self, imdb_id: str) -> Meta:
        ...

    async def get_tv_show(self, imdb_id: str, season: int, episode: int) -> Meta:
        ...


class CinemetaClient:
    BASE_URL = "https://v3-cinemeta.strem.io"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 2.0,
        ttl: int = 30 * 24 * 3600,
        cache: Optional[Union[InMemoryCache, RedisCache]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.ttl = ttl
        self.cache = cache if cache is not None else InMemoryCache()
        self.session: Optional[aiohttp.ClientSession] = None

    async def get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        await self.cache.close()

    async def get_movie(self, imdb_id: str) -> Meta:
        """Fetch movie meta, from the cache if possible"""
        return await self._get_meta("movie", imdb_id, imdb_id)

    async def get_tv_show(self, imdb_id: str, season: int, episode: int) -> Meta:
        """Fetch TV show meta, from the cache if possible"""
        return await self._get_meta("series", imdb_id, f"{imdb_id}:{season}:{episode}")

    async def _get_meta(self, media_type: str, imdb_id: str, log_id: str) -> Meta:
        cached = await self.cache.get(imdb_id)
        if cached is None:
            logger.debug("Meta not found in cache: %s", log_id)
        else:
            meta, created = cached
            expired_since = time.time() - (created + self.ttl)
            if expired_since > 0:
                logger.debug("Hit cache for meta %s, but item expired %.0fs ago", log_id, expired_since)
                await self.cache.delete(imdb_id)
            else:
                logger.debug("Hit cache for meta %s", log_id)
                return meta

        data = await self._request(f"/meta/{media_type}/{imdb_id}.json")
        try:
            meta = Meta.model_validate(data.get("meta") or {})
        except ValidationError as e:
            raise MetaFetchError(f"Couldn't parse Cinemeta response: {e}") from e
        if not meta.name:
            raise MetaFetchError(f"Couldn't find {media_type} name in Cinemeta response")

        if not await self.cache.set(imdb_id, meta):
            logger.error("Couldn't cache meta for %s", log_id)
        return meta

    async def _request(self, endpoint: str) -> Dict[str, Any]:
        """GET a Cinemeta endpoint and return the JSON object"""
        url = f"{self.base_url}{endpoint}"
        try:
            session = await self.get_session()
            async with session.get(url) as resp:
                if resp.status != 200:
                    raise MetaFetchError(f"Bad GET response for {url}: {resp.status}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise MetaFetchError(f"Couldn't GET {url}: {e}") from e

        if not isinstance(data, dict):
            raise MetaFetchError(f"Unexpected Cinemeta response for {url}")
        return data
