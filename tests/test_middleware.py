"""
Tests for request logging, metadata lookup, metrics and operator middleware
"""
import logging

import pytest
from httpx import ASGITransport, AsyncClient

from stremio_addon.api.middleware import MetaMiddleware
from stremio_addon.core.config import Options
from stremio_addon.core.errors import MetaFetchError
from stremio_addon.models.meta import Meta
from stremio_addon.models.stremio import StreamItem
from stremio_addon.services.metrics import classify_endpoint
from stremio_addon.utils.paths import prefix_pattern

REQUEST_LOGGER = "stremio_addon.requests"


class FakeMetaClient:
    """Records lookups and answers them from a dict"""

    def __init__(self, metas=None, error=None):
        self.metas = metas or {}
        self.error = error
        self.calls = []

    async def get_movie(self, imdb_id):
        self.calls.append(("movie", imdb_id))
        if self.error:
            raise self.error
        return self.metas[imdb_id]

    async def get_tv_show(self, imdb_id, season, episode):
        self.calls.append(("series", imdb_id, season, episode))
        if self.error:
            raise self.error
        return self.metas[imdb_id]


@pytest.fixture
def meta_client():
    return FakeMetaClient({
        "tt1254207": Meta(id="tt1254207", type="movie", name="Big Buck Bunny", releaseInfo="2008"),
        "tt0944947": Meta(id="tt0944947", type="series", name="Game of Thrones", releaseInfo="2011-2019"),
    })


def request_log_lines(caplog):
    return [r.getMessage() for r in caplog.records if r.name == REQUEST_LOGGER]


class TestRequestLogging:
    """Test the per-request log line"""

    @pytest.mark.asyncio
    async def test_log_line(self, make_addon, client_for, caplog):
        caplog.set_level(logging.INFO, logger=REQUEST_LOGGER)

        async with client_for(make_addon()) as client:
            await client.get("/catalog/movie/blender.json?foo=bar", headers={"User-Agent": "test-agent"})

        lines = request_log_lines(caplog)
        assert len(lines) == 1
        assert lines[0].startswith("Handled request: status=200 duration=")
        assert "method=GET" in lines[0]
        assert "url=/catalog/movie/blender.json?foo=bar" in lines[0]
        assert "userAgent" not in lines[0]
        assert "ip=" not in lines[0]

    @pytest.mark.asyncio
    async def test_optional_fields(self, make_addon, client_for, caplog):
        caplog.set_level(logging.INFO, logger=REQUEST_LOGGER)
        addon = make_addon(options=Options(log_ips=True, log_user_agent=True))

        async with client_for(addon) as client:
            await client.get(
                "/manifest.json",
                headers={"User-Agent": "test-agent", "X-Forwarded-For": "203.0.113.7"},
            )

        line = request_log_lines(caplog)[0]
        assert "userAgent='test-agent'" in line
        assert "forwardedFor=203.0.113.7" in line
        assert "ip=" in line

    @pytest.mark.asyncio
    async def test_error_status_is_logged(self, make_addon, client_for, caplog):
        caplog.set_level(logging.INFO, logger=REQUEST_LOGGER)

        async with client_for(make_addon()) as client:
            await client.get("/catalog/series/blender.json")

        assert "status=404" in request_log_lines(caplog)[0]

    @pytest.mark.asyncio
    async def test_manifest_callback_error_is_logged(self, make_addon, client_for, caplog):
        caplog.set_level(logging.INFO, logger=REQUEST_LOGGER)

        def callback(ctx, manifest, user_data):
            raise RuntimeError("credentials check failed")

        addon = make_addon()
        addon.set_manifest_callback(callback)

        async with client_for(addon) as client:
            response = await client.get("/manifest.json")

        assert response.status_code == 500
        lines = request_log_lines(caplog)
        assert len(lines) == 1
        assert "status=500" in lines[0]

    @pytest.mark.asyncio
    async def test_exception_in_chain_is_logged(self, make_addon, caplog):
        caplog.set_level(logging.INFO, logger=REQUEST_LOGGER)

        async def broken(request, call_next):
            raise RuntimeError("broken middleware")

        addon = make_addon()
        addon.add_middleware("/manifest.json", broken)
        transport = ASGITransport(app=addon.create_app(), raise_app_exceptions=False)

        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/manifest.json")

        assert response.status_code == 500
        lines = request_log_lines(caplog)
        assert len(lines) == 1
        assert "status=500" in lines[0]
        assert "url=/manifest.json" in lines[0]

    @pytest.mark.asyncio
    async def test_disabled(self, make_addon, client_for, caplog):
        caplog.set_level(logging.INFO, logger=REQUEST_LOGGER)
        addon = make_addon(options=Options(disable_request_logging=True))

        async with client_for(addon) as client:
            await client.get("/manifest.json")

        assert request_log_lines(caplog) == []

    @pytest.mark.asyncio
    async def test_media_name(self, make_addon, client_for, caplog, meta_client):
        caplog.set_level(logging.INFO, logger=REQUEST_LOGGER)
        addon = make_addon(options=Options(log_media_name=True), meta_client=meta_client)

        async with client_for(addon) as client:
            response = await client.get("/stream/movie/tt1254207.json")
            await client.get("/catalog/movie/blender.json")

        assert response.status_code == 200
        lines = request_log_lines(caplog)
        assert "mediaName='Big Buck Bunny (2008)'" in lines[0]
        # Only stream requests are looked up
        assert "mediaName" not in lines[1]
        assert meta_client.calls == [("movie", "tt1254207")]

    @pytest.mark.asyncio
    async def test_media_name_lookup_fails(self, make_addon, client_for, caplog):
        caplog.set_level(logging.INFO, logger=REQUEST_LOGGER)
        failing = FakeMetaClient(error=MetaFetchError("Cinemeta is down"))
        addon = make_addon(options=Options(log_media_name=True), meta_client=failing)

        async with client_for(addon) as client:
            response = await client.get("/stream/movie/tt1254207.json")

        assert response.status_code == 200
        assert "mediaName='?'" in request_log_lines(caplog)[0]


class TestMetaInContext:
    """Test metadata lookup before the stream handler"""

    @pytest.mark.asyncio
    async def test_meta_in_context(self, make_addon, client_for, meta_client):
        async def stream_handler(ctx, id, user_data):
            return [StreamItem(url="https://example.com/bbb.mp4", title=ctx.meta.name)]

        addon = make_addon(
            stream_handlers={"movie": stream_handler},
            options=Options(put_meta_in_context=True),
            meta_client=meta_client,
        )
        async with client_for(addon) as client:
            response = await client.get("/stream/movie/tt1254207.json")

        assert response.json()["streams"][0]["title"] == "Big Buck Bunny"

    @pytest.mark.asyncio
    async def test_series_id(self, make_addon, client_for, meta_client):
        titles = []

        async def stream_handler(ctx, id, user_data):
            titles.append(ctx.meta.display_name)
            return []

        addon = make_addon(
            stream_handlers={"series": stream_handler},
            options=Options(put_meta_in_context=True),
            meta_client=meta_client,
        )
        async with client_for(addon) as client:
            response = await client.get("/stream/series/tt0944947%3A1%3A2.json")

        assert response.status_code == 200
        assert titles == ["Game of Thrones (2011-2019)"]
        assert meta_client.calls == [("series", "tt0944947", 1, 2)]

    @pytest.mark.asyncio
    async def test_lookup_failure_leaves_meta_empty(self, make_addon, client_for):
        metas = []

        async def stream_handler(ctx, id, user_data):
            metas.append(ctx.meta)
            return []

        addon = make_addon(
            stream_handlers={"movie": stream_handler},
            options=Options(put_meta_in_context=True),
            meta_client=FakeMetaClient(error=MetaFetchError("Cinemeta is down")),
        )
        async with client_for(addon) as client:
            response = await client.get("/stream/movie/tt1254207.json")

        assert response.status_code == 200
        assert metas == [None]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("media_type,media_id", [
        ("series", "tt0944947"),
        ("series", "tt0944947:x:2"),
        ("channel", "tt0944947"),
    ])
    async def test_unsupported_ids(self, meta_client, media_type, media_id):
        middleware = MetaMiddleware(None, meta_client=meta_client)

        assert await middleware.fetch_meta(media_type, media_id) is None
        assert meta_client.calls == []


class TestMetrics:
    """Test Prometheus metrics"""

    @pytest.mark.asyncio
    async def test_metrics_endpoint(self, make_addon, client_for):
        addon = make_addon(options=Options(metrics=True))

        async with client_for(addon) as client:
            await client.get("/manifest.json")
            await client.get("/some-data/stream/movie/tt1254207.json")
            await client.get("/stream/movie/.json")
            response = await client.get("/metrics")

        assert response.status_code == 200
        assert 'http_requests_total{endpoint="manifest",status="200"} 1.0' in response.text
        assert 'http_requests_total{endpoint="stream-data",status="200"} 1.0' in response.text
        assert 'http_requests_total{endpoint="stream",status="400"} 1.0' in response.text

    @pytest.mark.asyncio
    async def test_invariant_violations(self, make_addon, client_for):
        async def catalog_handler(ctx, id, user_data):
            return [object()]

        addon = make_addon(catalog_handlers={"movie": catalog_handler}, options=Options(metrics=True))
        async with client_for(addon) as client:
            failed = await client.get("/catalog/movie/blender.json")
            response = await client.get("/metrics")

        assert failed.status_code == 500
        assert "invariant_violations_total 1.0" in response.text

    @pytest.mark.asyncio
    async def test_metrics_disabled(self, make_addon, client_for):
        async with client_for(make_addon()) as client:
            response = await client.get("/metrics")

        assert response.status_code == 404

    @pytest.mark.parametrize("path,endpoint", [
        ("/", "root"),
        ("/manifest.json", "manifest"),
        ("/configure", "configure"),
        ("/configure/style.css", "configure-other"),
        ("/health", "health"),
        ("/metrics", "metrics"),
        ("/catalog/movie/top.json", "catalog"),
        ("/stream/movie/tt1254207.json", "stream"),
        ("/abc/manifest.json", "manifest-data"),
        ("/abc/catalog/movie/top.json", "catalog-data"),
        ("/abc/stream/movie/tt1254207.json", "stream-data"),
        ("/favicon.ico", "other"),
    ])
    def test_classify_endpoint(self, path, endpoint):
        assert classify_endpoint(path) == endpoint


class TestOperatorExtensions:
    """Test middleware and endpoints registered on the addon"""

    @pytest.mark.asyncio
    async def test_prefix_middleware(self, make_addon, client_for):
        seen = []

        async def tag(request, call_next):
            seen.append(request.url.path)
            response = await call_next(request)
            response.headers["X-Tagged"] = "1"
            return response

        addon = make_addon()
        addon.add_middleware("/{user_data}/stream", tag)

        async with client_for(addon) as client:
            tagged = await client.get("/abc/stream/movie/tt1254207.json")
            untagged = await client.get("/stream/movie/tt1254207.json")

        assert tagged.headers["x-tagged"] == "1"
        assert "x-tagged" not in untagged.headers
        assert seen == ["/abc/stream/movie/tt1254207.json"]

    @pytest.mark.asyncio
    async def test_middleware_order(self, make_addon, client_for):
        order = []

        def recorder(name):
            async def middleware(request, call_next):
                order.append(name)
                return await call_next(request)
            return middleware

        addon = make_addon()
        addon.add_middleware("/", recorder("first"))
        addon.add_middleware("/manifest.json", recorder("second"))

        async with client_for(addon) as client:
            await client.get("/manifest.json")

        assert order == ["first", "second"]

    @pytest.mark.asyncio
    async def test_custom_endpoint(self, make_addon, client_for):
        async def ping(user_data: str):
            return {"pong": user_data}

        addon = make_addon()
        addon.add_endpoint("GET", "/{user_data}/ping", ping)

        async with client_for(addon) as client:
            response = await client.get("/abc/ping")

        assert response.status_code == 200
        assert response.json() == {"pong": "abc"}

    @pytest.mark.parametrize("prefix,path,matches", [
        ("/{user_data}/stream", "/abc/stream/movie/tt1.json", True),
        ("/{user_data}/stream", "/stream/movie/tt1.json", False),
        ("/{user_data}/stream", "/abc/streams", False),
        ("/health", "/health", True),
        ("/", "/anything", True),
    ])
    def test_prefix_pattern(self, prefix, path, matches):
        assert bool(prefix_pattern(prefix).match(path)) is matches
