"""
FastAPI Application Factory
Creates and configures the FastAPI app instance for an addon
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from stremio_addon.api.dispatch import ResourceDispatcher
from stremio_addon.api.endpoints import catalog, health, manifest, metrics, root, stream
from stremio_addon.api.middleware import (
    MetaMiddleware,
    MetricsMiddleware,
    PrefixMiddleware,
    RequestLoggingMiddleware,
    RouteGuardMiddleware,
    cors_options,
)
from stremio_addon.services.metrics import RequestMetrics

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    addon = app.state.addon
    logger.info(f"Starting addon {addon.manifest.id} {addon.manifest.version}")

    yield

    logger.info("Shutting down addon")
    addon.shutdown.set()
    if addon.meta_client is not None and hasattr(addon.meta_client, "close"):
        await addon.meta_client.close()


def create_app(addon) -> FastAPI:
    """Create and configure FastAPI application for `addon`"""
    opts = addon.options

    app = FastAPI(
        title=addon.manifest.name,
        description=addon.manifest.description,
        version=addon.manifest.version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.addon = addon
    app.state.manifest = manifest.ManifestResponder(
        addon.manifest,
        addon.codec,
        callback=addon.manifest_callback,
        shutdown=addon.shutdown,
    )
    app.state.catalog = ResourceDispatcher(
        "catalog",
        addon.catalog_handlers,
        "metas",
        addon.codec,
        cache_age=opts.cache_age_catalogs,
        cache_public=opts.cache_public_catalogs,
        handle_etag=opts.handle_etag_catalogs,
        shutdown=addon.shutdown,
    )
    app.state.stream = ResourceDispatcher(
        "stream",
        addon.stream_handlers,
        "streams",
        addon.codec,
        cache_age=opts.cache_age_streams,
        cache_public=opts.cache_public_streams,
        handle_etag=opts.handle_etag_streams,
        shutdown=addon.shutdown,
    )
    app.state.metrics = RequestMetrics() if opts.metrics else None

    # Middleware: the last one added is the outermost one, so innermost first
    for prefix, func in reversed(addon.middlewares):
        app.add_middleware(PrefixMiddleware, prefix=prefix, func=func)
    if opts.needs_meta:
        app.add_middleware(
            MetaMiddleware,
            meta_client=addon.meta_client,
            put_meta_in_context=opts.put_meta_in_context,
            log_media_name=opts.log_media_name,
            timeout=opts.cinemeta_timeout,
        )
    if not opts.disable_request_logging:
        app.add_middleware(
            RequestLoggingMiddleware,
            log_ips=opts.log_ips,
            log_user_agent=opts.log_user_agent,
            log_media_name=opts.log_media_name,
        )
    app.add_middleware(
        RouteGuardMiddleware,
        requires_user_data=addon.requires_user_data,
        stream_id_regex=opts.stream_id_regex,
    )
    if app.state.metrics is not None:
        app.add_middleware(MetricsMiddleware, metrics=app.state.metrics)
    app.add_middleware(CORSMiddleware, **cors_options())

    # Include routers
    app.include_router(health.router)
    app.include_router(manifest.router)
    if addon.catalog_handlers:
        app.include_router(catalog.router)
    if addon.stream_handlers:
        app.include_router(stream.router)
    if opts.redirect_url:
        app.include_router(root.router)
    if app.state.metrics is not None:
        app.include_router(metrics.router)

    for method, path, endpoint in addon.endpoints:
        app.add_api_route(path, endpoint, methods=[method])

    # Configuration page
    if opts.configure_html_dir:
        try:
            app.mount("/configure", StaticFiles(directory=opts.configure_html_dir, html=True), name="configure")
        except Exception as e:
            logger.warning(f"Could not mount configure page: {e}")

    return app
