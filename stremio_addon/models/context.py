"""
Request Context
Per-request state shared by the middleware chain and the handlers
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

from starlette.requests import Request

from stremio_addon.models.meta import Meta

STATE_KEY = "addon_context"


@dataclass
class RequestContext:
    """Flags and data derived while a single request is processed"""
    configured: bool = False  # the path carries user data
    is_stream: bool = False
    media_type: str = ""
    media_id: str = ""  # unescaped
    meta: Optional[Meta] = None
    # Set once a concurrent metadata lookup has finished (successfully or not)
    meta_ready: Optional[asyncio.Event] = None


def get_request_context(request: Request) -> RequestContext:
    """Return the request's context, creating it on first access"""
    ctx = getattr(request.state, STATE_KEY, None)
    if ctx is None:
        ctx = RequestContext()
        setattr(request.state, STATE_KEY, ctx)
    return ctx


class HandlerContext:
    """
    What handlers and the manifest callback receive as first argument

    Gives access to the request, the looked up metadata (when
    `put_meta_in_context` is enabled) and cancellation state.
    """

    def __init__(self, request: Request, shutdown: Optional[asyncio.Event] = None):
        self.request = request
        self.state = get_request_context(request)
        self._shutdown = shutdown

    @property
    def meta(self) -> Optional[Meta]:
        return self.state.meta

    @property
    def shutting_down(self) -> bool:
        """
        True once the server started its graceful shutdown

        Usable from sync handlers, which run in the threadpool. Client
        disconnects are only visible through `is_cancelled()`.
        """
        return self._shutdown is not None and self._shutdown.is_set()

    async def is_cancelled(self) -> bool:
        """True when the client went away or the server is shutting down"""
        if self.shutting_down:
            return True
        return await self.request.is_disconnected()
