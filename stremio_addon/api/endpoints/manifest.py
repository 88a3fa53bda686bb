"""
Manifest Endpoint
Returns the addon manifest, with and without user data in the URL
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from fastapi import APIRouter, Request, Response

from stremio_addon.api.dispatch import call_handler
from stremio_addon.core.errors import BadUserData
from stremio_addon.models.context import HandlerContext
from stremio_addon.models.stremio import Manifest
from stremio_addon.utils.paths import raw_user_data
from stremio_addon.utils.token import UserDataCodec

logger = logging.getLogger(__name__)
router = APIRouter()

# callback(ctx, manifest_clone, user_data) -> HTTP status; >= 400 aborts the request
ManifestCallback = Callable[[HandlerContext, Manifest, Any], Union[int, Awaitable[int]]]


class ManifestResponder:
    """
    Serves the canonical manifest and its "configured" variant

    With user data in the URL Stremio only shows its "Install" button when
    `configurationRequired` is false, so that variant always reports false.
    The canonical manifest object is never mutated.
    """

    def __init__(
        self,
        manifest: Manifest,
        codec: UserDataCodec,
        callback: Optional[ManifestCallback] = None,
        shutdown: Optional[asyncio.Event] = None,
    ):
        self.manifest = manifest
        self.codec = codec
        self.callback = callback
        self.shutdown = shutdown

        configured = manifest.clone()
        configured.behaviorHints.configurationRequired = False
        self.body = manifest.to_json()
        self.configured_body = configured.to_json()

    async def respond(self, request: Request) -> Response:
        logger.debug("manifestHandler called")

        token = raw_user_data(request)
        configured = bool(token)
        try:
            user_data = self.codec.decode(token)
        except BadUserData:
            return Response(status_code=400)

        if self.callback is not None:
            # The callback may modify its copy freely
            manifest = self.manifest.clone()
            try:
                status = await call_handler(self.callback, HandlerContext(request, self.shutdown), manifest, user_data)
            except Exception:
                logger.error("Manifest callback returned error", exc_info=True)
                return Response(status_code=500)
            if status is not None and status >= 400:
                return Response(status_code=status)
            if configured:
                manifest.behaviorHints.configurationRequired = False
            body = manifest.to_json()
        elif configured:
            body = self.configured_body
        else:
            body = self.body

        logger.debug(f"Responding with {body!r}")
        return Response(content=body, media_type="application/json")


@router.api_route("/manifest.json", methods=["GET", "HEAD"])
@router.api_route("/{user_data}/manifest.json", methods=["GET", "HEAD"])
async def get_manifest(request: Request):
    """
    Return addon manifest

    The variant with user data is what users install after configuring the addon
    """
    return await request.app.state.manifest.respond(request)
