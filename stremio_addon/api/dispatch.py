"""
Dispatch Pipeline
Turns catalog / stream requests into handler calls and handler results into responses
"""
import asyncio
import hashlib
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import unquote

from fastapi import Request, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from stremio_addon.core.errors import BadRequest, BadUserData, InvariantViolation, NotFound
from stremio_addon.models.context import HandlerContext, get_request_context
from stremio_addon.models.stremio import MetaPreviewItem, StreamItem
from stremio_addon.utils.paths import match_resource, raw_user_data
from stremio_addon.utils.token import UserDataCodec

logger = logging.getLogger(__name__)

# handler(ctx, id, user_data) -> list of items; may be sync or async
CatalogHandler = Callable[[HandlerContext, str, Any], Union[List[MetaPreviewItem], Awaitable[List[MetaPreviewItem]]]]
StreamHandler = Callable[[HandlerContext, str, Any], Union[List[StreamItem], Awaitable[List[StreamItem]]]]


def _is_async(fn: Callable) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(getattr(fn, "__call__", None))


async def call_handler(fn: Callable, *args) -> Any:
    """
    Call a user supplied callback

    Coroutine functions are awaited on the event loop, plain functions run
    in the threadpool so that blocking I/O doesn't stall other requests.
    """
    if _is_async(fn):
        return await fn(*args)
    result = await run_in_threadpool(fn, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


def serialize_items(items: Optional[List[Any]]) -> bytes:
    """Serialize handler results to a compact JSON array"""
    if items is None:
        items = []
    try:
        payload = [
            item.model_dump(mode="json", exclude_none=True) if isinstance(item, BaseModel) else item
            for item in items
        ]
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise InvariantViolation(f"Couldn't serialize handler result: {e}") from e


def compute_etag(body: bytes) -> str:
    return '"' + hashlib.md5(body).hexdigest() + '"'


def count_invariant_violation(request: Request):
    metrics = getattr(request.app.state, "metrics", None)
    if metrics is not None:
        metrics.invariant_violations.inc()


def cache_control_value(cache_age: int, cache_public: bool) -> str:
    """Cache-Control header value, "" when caching is disabled"""
    if not cache_age:
        return ""
    return f"max-age={cache_age}, {'public' if cache_public else 'private'}"


class ResourceDispatcher:
    """
    Request handler for one resource family ("catalog" or "stream")

    Holds the read-only {media type: handler} table and the caching
    configuration of the family.
    """

    def __init__(
        self,
        name: str,
        handlers: Dict[str, Callable],
        json_key: str,
        codec: UserDataCodec,
        cache_age: int = 0,
        cache_public: bool = False,
        handle_etag: bool = False,
        shutdown: Optional[asyncio.Event] = None,
    ):
        self.name = name
        self.handlers = dict(handlers)
        self.codec = codec
        self.handle_etag = handle_etag
        self.shutdown = shutdown
        self.cache_control = cache_control_value(cache_age, cache_public)
        self._prefix = b'{"' + json_key.encode("utf-8") + b'":'
        self._suffix = b"}"

    def _media_id(self, request: Request) -> str:
        ctx = get_request_context(request)
        if ctx.media_id:
            return ctx.media_id
        match = match_resource(request)
        if match is None:
            raise InvariantViolation(f"{self.name} handler called for unexpected path {request.url.path}")
        try:
            return unquote(match.group("id"), errors="strict")
        except UnicodeDecodeError as e:
            raise InvariantViolation(f"Requested ID couldn't be unescaped: {match.group('id')}") from e

    async def dispatch(self, request: Request, media_type: str) -> Response:
        logger.debug(f"{self.name}Handler called")
        # The guard already unescaped the type
        media_type = get_request_context(request).media_type or media_type

        try:
            media_id = self._media_id(request)
        except InvariantViolation as e:
            logger.error(str(e))
            count_invariant_violation(request)
            return Response(status_code=500)

        handler = self.handlers.get(media_type)
        if handler is None:
            logger.warning(f"Got {self.name} request for unhandled type {media_type!r}; returning 404")
            return Response(status_code=404)

        try:
            user_data = self.codec.decode(raw_user_data(request))
        except BadUserData:
            return Response(status_code=400)

        try:
            result = await call_handler(handler, HandlerContext(request, self.shutdown), media_id, user_data)
        except NotFound:
            logger.warning(f"Got {self.name} request for unhandled media ID {media_id!r}; returning 404")
            return Response(status_code=404)
        except BadRequest:
            logger.warning("Got bad request; returning 400")
            return Response(status_code=400)
        except Exception:
            logger.error(
                "Addon returned error (requestedType=%s, requestedID=%s)",
                media_type,
                media_id,
                exc_info=True,
            )
            return Response(status_code=500)

        try:
            body = serialize_items(result)
        except InvariantViolation:
            logger.error(
                "Couldn't marshal response (requestedType=%s, requestedID=%s)",
                media_type,
                media_id,
                exc_info=True,
            )
            count_invariant_violation(request)
            return Response(status_code=500)

        headers = {}
        if self.cache_control:
            headers["Cache-Control"] = self.cache_control
        if self.handle_etag:
            etag = compute_etag(body)
            headers["ETag"] = etag
            if_none_match = request.headers.get("if-none-match", "")
            if if_none_match == "*" or if_none_match == etag:
                logger.debug(f"If-None-Match {if_none_match!r} matches ETag {etag}, responding with 304")
                # Cache-Control is required on a 304 (RFC 7232 section 4.1)
                return Response(status_code=304, headers=headers)
            logger.debug(f"If-None-Match {if_none_match!r} != ETag {etag}")

        body = self._prefix + body + self._suffix
        logger.debug(f"Responding with {body!r} (requestedType={media_type}, requestedID={media_id})")
        return Response(content=body, media_type="application/json", headers=headers)
