"""
Middleware
Route guard, request logging, metadata lookup, metrics and operator middleware
"""
import asyncio
import logging
import re
import time
from typing import Awaitable, Callable, Optional, Set
from urllib.parse import unquote

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from stremio_addon.core.errors import MetaFetchError
from stremio_addon.models.context import RequestContext, get_request_context
from stremio_addon.models.meta import Meta
from stremio_addon.services.cinemeta import MetaFetcher
from stremio_addon.services.metrics import RequestMetrics
from stremio_addon.utils.paths import MANIFEST_PATH, RESOURCE_PATH, prefix_pattern, raw_path

logger = logging.getLogger(__name__)
request_logger = logging.getLogger("stremio_addon.requests")

OperatorMiddleware = Callable[[Request, RequestResponseEndpoint], Awaitable[Response]]

# Headers as listed by the Stremio example addon, plus a few that clients send in practice
CORS_ALLOW_HEADERS = [
    "Accept",
    "Accept-Language",
    "Content-Type",
    "Origin",
    "Accept-Encoding",
    "Content-Language",
    "X-Requested-With",
]


def cors_options() -> dict:
    """CORSMiddleware arguments. Stremio doesn't show stream responses without CORS!"""
    return {
        "allow_origins": ["*"],
        "allow_methods": ["GET", "HEAD"],
        "allow_headers": CORS_ALLOW_HEADERS,
    }


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """
    Validates catalog / stream requests before any handler runs

    Rejects missing type / ID, requests without user data when the addon
    requires configuration, and stream IDs not matching the configured
    regex, all with 400. Accepted requests get their context tagged.
    """

    def __init__(self, app: ASGIApp, requires_user_data: bool = False, stream_id_regex: str = ""):
        super().__init__(app)
        self.requires_user_data = requires_user_data
        self.stream_id_regex = re.compile(stream_id_regex)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = raw_path(request)
        if MANIFEST_PATH.match(path):
            # Route on the escaped path, so that "%2F" in user data doesn't add segments
            request.scope["path"] = path
            return await call_next(request)

        match = RESOURCE_PATH.match(path)
        if match is None:
            return await call_next(request)

        user_data = match.group("user_data")
        if self.requires_user_data and not user_data:
            # 400 instead of 404, so clients don't think it's a server-side error
            logger.debug("Rejecting request without required user data")
            return Response(status_code=400)

        media_type, raw_id = match.group("type"), match.group("id")
        if not media_type or not raw_id:
            logger.debug("Rejecting bad request due to missing type or ID")
            return Response(status_code=400)

        try:
            media_id = unquote(raw_id, errors="strict")
        except UnicodeDecodeError as e:
            logger.warning(f"Couldn't unescape ID {raw_id!r}: {e}")
            return Response(status_code=500)

        is_stream = match.group("resource") == "stream"
        if is_stream and not self.stream_id_regex.search(media_id):
            logger.debug("Rejecting bad request due to stream ID not matching the given regex")
            return Response(status_code=400)

        ctx = get_request_context(request)
        ctx.configured = bool(user_data)
        ctx.is_stream = is_stream
        ctx.media_type = unquote(media_type)
        ctx.media_id = media_id
        request.scope["path"] = path
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request, after the rest of the chain has finished"""

    def __init__(
        self,
        app: ASGIApp,
        log_ips: bool = False,
        log_user_agent: bool = False,
        log_media_name: bool = False,
    ):
        super().__init__(app)
        self.log_ips = log_ips
        self.log_user_agent = log_user_agent
        self.log_media_name = log_media_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.monotonic()

        # First call the other handlers in the chain
        try:
            response = await call_next(request)
        except Exception:
            logger.error("Received error from next middleware", exc_info=True)
            await self.log_request(request, start, 500)
            raise

        await self.log_request(request, start, response.status_code)
        return response

    async def log_request(self, request: Request, start: float, status: int):
        duration_ms = int((time.monotonic() - start) * 1000)
        url = request.url.path
        if request.url.query:
            url += "?" + request.url.query
        fields = [
            f"status={status}",
            f"duration={duration_ms}ms",
            f"method={request.method}",
            f"url={url}",
        ]
        if self.log_ips:
            fields.append(f"ip={request.client.host if request.client else ''}")
            fields.append(f"forwardedFor={request.headers.get('x-forwarded-for', '')}")
        if self.log_user_agent:
            fields.append(f"userAgent={request.headers.get('user-agent', '')!r}")

        ctx = get_request_context(request)
        if self.log_media_name and ctx.is_stream:
            if ctx.meta_ready is not None:
                # The lookup runs concurrently to the handler
                await ctx.meta_ready.wait()
            media_name = ctx.meta.display_name if ctx.meta is not None else "?"
            fields.append(f"mediaName={media_name!r}")

        request_logger.info("Handled request: " + " ".join(fields))


class MetaMiddleware(BaseHTTPMiddleware):
    """
    Looks up the name of the requested movie / TV show for stream requests

    With `put_meta_in_context` the lookup finishes before the handler runs,
    so handlers can use it. When it's only needed for the request log it runs
    as a separate task and signals completion through the request context.
    """

    def __init__(
        self,
        app: ASGIApp,
        meta_client: MetaFetcher,
        put_meta_in_context: bool = False,
        log_media_name: bool = False,
        timeout: float = 2.0,
    ):
        super().__init__(app)
        self.meta_client = meta_client
        self.put_meta_in_context = put_meta_in_context
        self.log_media_name = log_media_name
        self.timeout = timeout
        self._tasks: Set[asyncio.Task] = set()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        ctx = get_request_context(request)
        if not ctx.is_stream:
            return await call_next(request)

        if self.put_meta_in_context:
            await self.put_meta(ctx)
        elif self.log_media_name:
            ctx.meta_ready = asyncio.Event()
            task = asyncio.create_task(self._put_meta_and_signal(ctx))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return await call_next(request)

    async def _put_meta_and_signal(self, ctx: RequestContext):
        try:
            await self.put_meta(ctx)
        finally:
            ctx.meta_ready.set()

    async def put_meta(self, ctx: RequestContext):
        try:
            ctx.meta = await asyncio.wait_for(self.fetch_meta(ctx.media_type, ctx.media_id), self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Meta lookup for {ctx.media_id} timed out after {self.timeout}s")
        except MetaFetchError as e:
            logger.error(f"Couldn't get meta for {ctx.media_id}: {e}")
        except Exception:
            logger.error(f"Couldn't get meta for {ctx.media_id}", exc_info=True)
        else:
            if ctx.meta is not None:
                logger.debug(f"Got meta from Cinemeta: {ctx.meta!r}")

    async def fetch_meta(self, media_type: str, media_id: str) -> Optional[Meta]:
        if media_type == "movie":
            return await self.meta_client.get_movie(media_id)
        if media_type == "series":
            parts = media_id.split(":")
            if len(parts) != 3:
                logger.warning(f'No 3 elements after splitting TV show ID {media_id!r} by ":"')
                return None
            try:
                season, episode = int(parts[1]), int(parts[2])
            except ValueError:
                logger.warning(f"Can't parse season / episode of {media_id!r} as int")
                return None
            return await self.meta_client.get_tv_show(parts[0], season, episode)
        return None


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts handled requests per endpoint and status code"""

    def __init__(self, app: ASGIApp, metrics: RequestMetrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            response = await call_next(request)
        except Exception:
            self.metrics.errors.inc()
            raise
        self.metrics.observe(request.url.path, response.status_code)
        return response


class PrefixMiddleware(BaseHTTPMiddleware):
    """Runs an operator supplied middleware function only for paths under a prefix"""

    def __init__(self, app: ASGIApp, prefix: str, func: OperatorMiddleware):
        super().__init__(app)
        self.pattern = prefix_pattern(prefix)
        self.func = func

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.pattern.match(request.url.path):
            return await self.func(request, call_next)
        return await call_next(request)
