"""
Addon
Entry point for SDK users: manifest + handlers + options in, HTTP service out
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple, Type, Union

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel

from stremio_addon.api.dispatch import CatalogHandler, StreamHandler
from stremio_addon.api.endpoints.manifest import ManifestCallback
from stremio_addon.api.middleware import OperatorMiddleware
from stremio_addon.core.app import create_app as build_app
from stremio_addon.core.config import Options
from stremio_addon.core.errors import AddonConfigError
from stremio_addon.core.logging import configure_logging
from stremio_addon.models.stremio import Manifest
from stremio_addon.services.cache import InMemoryCache, RedisCache
from stremio_addon.services.cinemeta import CinemetaClient, MetaFetcher
from stremio_addon.utils.token import UserDataCodec

logger = logging.getLogger(__name__)


class Addon:
    """
    A remote Stremio addon

    Create one with a manifest and handlers, optionally register extra
    middleware / endpoints, then serve it with `run()` or mount the app
    from `create_app()` yourself.
    """

    def __init__(
        self,
        manifest: Manifest,
        catalog_handlers: Optional[Dict[str, CatalogHandler]] = None,
        stream_handlers: Optional[Dict[str, StreamHandler]] = None,
        options: Optional[Options] = None,
        user_data: Optional[Union[UserDataCodec, Type[BaseModel]]] = None,
        meta_client: Optional[MetaFetcher] = None,
    ):
        """
        Args:
            manifest: Addon manifest, must have id, name, description and version
            catalog_handlers: {media type: handler} for catalog requests
            stream_handlers: {media type: handler} for stream requests
            options: Addon options, defaults to Options() (reads STREMIO_* env vars)
            user_data: Pydantic model (or codec) for the user data in URLs.
                Without it user data is passed to handlers as opaque string.
            meta_client: Metadata lookup for stream requests, defaults to a
                Cinemeta client when `put_meta_in_context` or `log_media_name` is set

        Raises:
            AddonConfigError: If the manifest or handlers are unusable
        """
        if not (manifest.id and manifest.name and manifest.description and manifest.version):
            raise AddonConfigError("An empty manifest was passed")
        if not catalog_handlers and not stream_handlers:
            raise AddonConfigError("No handler was passed")

        self.manifest = manifest
        self.catalog_handlers: Dict[str, CatalogHandler] = dict(catalog_handlers or {})
        self.stream_handlers: Dict[str, StreamHandler] = dict(stream_handlers or {})
        self.options = options if options is not None else Options()

        if isinstance(user_data, UserDataCodec):
            self.codec = user_data
        elif user_data is not None:
            self.codec = UserDataCodec.for_model(user_data, base64=self.options.user_data_is_base64)
        else:
            self.codec = UserDataCodec(base64=self.options.user_data_is_base64)

        if meta_client is None and self.options.needs_meta:
            meta_client = self._default_meta_client()
        self.meta_client = meta_client

        self.manifest_callback: Optional[ManifestCallback] = None
        self.middlewares: List[Tuple[str, OperatorMiddleware]] = []
        self.endpoints: List[Tuple[str, str, Callable]] = []
        self.shutdown = asyncio.Event()
        self._app: Optional[FastAPI] = None

    @property
    def requires_user_data(self) -> bool:
        """Catalog and stream requests without user data get rejected"""
        return self.manifest.behaviorHints.configurationRequired

    def _default_meta_client(self) -> CinemetaClient:
        opts = self.options
        if opts.redis_url:
            cache = RedisCache(opts.redis_url, ttl=opts.cinemeta_ttl)
        else:
            cache = InMemoryCache()
        return CinemetaClient(
            base_url=opts.cinemeta_base_url,
            timeout=opts.cinemeta_timeout,
            ttl=opts.cinemeta_ttl,
            cache=cache,
        )

    def _check_not_started(self):
        if self._app is not None:
            raise AddonConfigError("The app was already created, register everything before")

    def set_manifest_callback(self, callback: ManifestCallback):
        """
        Register a callback that's called for every manifest request

        It gets a copy of the manifest it may modify and the decoded user
        data. Returning a status >= 400 aborts the request with that status,
        e.g. to prevent installations with invalid credentials.
        """
        self._check_not_started()
        self.manifest_callback = callback

    def add_middleware(self, path: str, middleware: OperatorMiddleware):
        """
        Add a middleware for all requests under `path`

        `middleware(request, call_next)` works like a Starlette HTTP middleware.
        The path may contain placeholders, e.g. "/{user_data}/stream".
        """
        self._check_not_started()
        self.middlewares.append((path, middleware))

    def add_endpoint(self, method: str, path: str, endpoint: Callable):
        """Add a custom endpoint, e.g. add_endpoint("GET", "/{user_data}/ping", ping)"""
        self._check_not_started()
        self.endpoints.append((method.upper(), path, endpoint))

    def create_app(self) -> FastAPI:
        """Build the FastAPI app. Afterwards nothing can be registered anymore."""
        if self._app is None:
            self._app = build_app(self)
        return self._app

    def run(self):
        """Serve the addon until SIGINT / SIGTERM, then shut down gracefully"""
        opts = self.options
        configure_logging(opts.logging_level, opts.log_encoding)

        logger.info("Setting up server...")
        app = self.create_app()
        logger.info(f"Starting server on {opts.bind_addr}:{opts.port}")
        uvicorn.run(
            app,
            host=opts.bind_addr,
            port=opts.port,
            timeout_keep_alive=opts.idle_timeout,
            timeout_graceful_shutdown=opts.shutdown_timeout,
            log_config=None,
            access_log=False,
        )
        logger.info("Finished shutting down server")
