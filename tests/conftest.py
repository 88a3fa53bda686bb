"""
Test configuration and fixtures
"""
import pytest
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient

from stremio_addon.core.addon import Addon
from stremio_addon.core.config import Options
from stremio_addon.models.stremio import (
    BehaviorHints,
    CatalogItem,
    ExtraItem,
    Manifest,
    MetaPreviewItem,
    ResourceItem,
    StreamItem,
)


@pytest.fixture
async def fake_redis():
    """Provide fake Redis client for testing"""
    redis_client = fakeredis.FakeRedis(decode_responses=True)
    yield redis_client
    await redis_client.flushall()
    await redis_client.aclose()


@pytest.fixture
def sample_manifest():
    """Manifest with every field populated"""
    return Manifest(
        id="com.example.some-addon",
        name="Some addon",
        description="Some addon for tests",
        version="0.1.0",
        resources=[
            ResourceItem(name="catalog", types=["movie"], idPrefixes=["tt"]),
            ResourceItem(name="stream", types=["movie", "series"], idPrefixes=["tt"]),
        ],
        types=["movie", "series"],
        catalogs=[
            CatalogItem(
                type="movie",
                id="blender",
                name="Blender movies",
                extra=[ExtraItem(name="genre", isRequired=True, options=["animation"], optionsLimit=1)],
            )
        ],
        idPrefixes=["tt"],
        background="https://example.com/background.jpg",
        logo="https://example.com/logo.png",
        contactEmail="mail@example.com",
        behaviorHints=BehaviorHints(adult=True, p2p=True, configurable=True, configurationRequired=False),
    )


@pytest.fixture
def sample_metas():
    return [
        MetaPreviewItem(
            id="tt1254207",
            type="movie",
            name="Big Buck Bunny",
            poster="https://example.com/bbb.jpg",
        ),
        MetaPreviewItem(
            id="tt1727587",
            type="movie",
            name="Sintel",
            poster="https://example.com/sintel.jpg",
        ),
    ]


@pytest.fixture
def sample_streams():
    return [
        StreamItem(infoHash="dd8255ecdc7ca55fb0bbf81323d87062db1f6d1c", title="1080p (torrent)", fileIdx=1),
        StreamItem(
            url="https://ftp.halifax.rwth-aachen.de/blender/demo/movies/BBB/bbb_sunflower_1080p_30fps_normal.mp4",
            title="1080p (HTTP stream)",
        ),
    ]


@pytest.fixture
def make_addon(sample_manifest, sample_metas, sample_streams):
    """Build an addon with working movie handlers; keyword arguments override the defaults"""

    async def catalog_handler(ctx, id, user_data):
        return sample_metas

    async def stream_handler(ctx, id, user_data):
        return sample_streams

    def _make(**kwargs):
        kwargs.setdefault("manifest", sample_manifest)
        kwargs.setdefault("catalog_handlers", {"movie": catalog_handler})
        kwargs.setdefault("stream_handlers", {"movie": stream_handler})
        kwargs.setdefault("options", Options())
        return Addon(**kwargs)

    return _make


@pytest.fixture
def client_for():
    """Return a function that opens an httpx client against an addon's app"""

    def _client(addon):
        return AsyncClient(transport=ASGITransport(app=addon.create_app()), base_url="http://test")

    return _client
