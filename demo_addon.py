#!/usr/bin/env python3
"""
Demo addon with free Blender movies
Example usage: STREMIO_LOG_MEDIA_NAME=true python demo_addon.py
"""
from stremio_addon.core.addon import Addon
from stremio_addon.core.config import Options
from stremio_addon.core.errors import NotFound
from stremio_addon.models.stremio import CatalogItem, Manifest, MetaPreviewItem, ResourceItem, StreamItem

VERSION = "0.1.0"

manifest = Manifest(
    id="com.example.blender-streams",
    name="Blender movie streams",
    description="Catalog and stream addon for free movies that were made with Blender",
    version=VERSION,
    resources=[
        ResourceItem(name="catalog", types=["movie"]),
        ResourceItem(name="stream", types=["movie"], idPrefixes=["tt"]),
    ],
    types=["movie"],
    catalogs=[CatalogItem(type="movie", id="blender", name="Free movies made with Blender")],
    idPrefixes=["tt"],
)

METAS = [
    MetaPreviewItem(
        id="tt1254207",
        type="movie",
        name="Big Buck Bunny",
        poster="https://image.tmdb.org/t/p/w600_and_h900_bestv2/uVEFQvFMMsg4e6yb03xOfVsDz4o.jpg",
        releaseInfo="2008",
    ),
    MetaPreviewItem(
        id="tt1727587",
        type="movie",
        name="Sintel",
        poster="https://image.tmdb.org/t/p/w600_and_h900_bestv2/4BMG9hk9NvSBeQvC82sVmVRK140.jpg",
        releaseInfo="2010",
    ),
]

STREAMS = {
    "tt1254207": [
        StreamItem(infoHash="dd8255ecdc7ca55fb0bbf81323d87062db1f6d1c", title="1080p (torrent)", fileIdx=1),
        StreamItem(
            url="https://download.blender.org/peach/bigbuckbunny_movies/big_buck_bunny_1080p_h264.mov",
            title="1080p (HTTP stream)",
        ),
    ],
    "tt1727587": [
        StreamItem(infoHash="08ada5a7a6183aae1e09d831df6748d566095a10", title="480p (torrent)", fileIdx=0),
        StreamItem(url="https://download.blender.org/demo/movies/Sintel.2010.1080p.mkv", title="1080p (HTTP stream)"),
    ],
}


async def movie_catalog(ctx, id, user_data):
    if id != "blender":
        raise NotFound(id)
    return METAS


async def movie_streams(ctx, id, user_data):
    # We only serve Big Buck Bunny and Sintel
    if id not in STREAMS:
        raise NotFound(id)
    return STREAMS[id]


def main():
    # Let clients and proxies cache streams for 24 hours
    options = Options(
        cache_age_streams=24 * 3600,
        cache_public_streams=True,
        handle_etag_streams=True,
    )
    addon = Addon(
        manifest,
        catalog_handlers={"movie": movie_catalog},
        stream_handlers={"movie": movie_streams},
        options=options,
    )
    addon.run()


if __name__ == "__main__":
    main()
