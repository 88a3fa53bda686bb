"""Locust load script for a Stremio addon.
Usage:
  python demo_addon.py
  STREMIO_TOKEN="<token>" locust -f perf/locustfile.py --host http://localhost:8080
"""
import os
from locust import HttpUser, task, between

# Optional user data segment, e.g. from generate_token.py
TOKEN = os.getenv("STREMIO_TOKEN", "")
CATALOG_ID = os.getenv("STREMIO_CATALOG_ID", "blender")
MOVIE_IDS = os.getenv("STREMIO_MOVIE_IDS", "tt1254207,tt1727587").split(",")


class StremioUser(HttpUser):
    wait_time = between(0.2, 1.0)

    def on_start(self):
        self.prefix = f"/{TOKEN}" if TOKEN else ""

    @task(1)
    def manifest(self):
        self.client.get(f"{self.prefix}/manifest.json")

    @task(2)
    def movie_catalog(self):
        self.client.get(f"{self.prefix}/catalog/movie/{CATALOG_ID}.json", name="/catalog/movie/[id].json")

    @task(4)
    def movie_streams(self):
        for movie_id in MOVIE_IDS:
            self.client.get(f"{self.prefix}/stream/movie/{movie_id}.json", name="/stream/movie/[id].json")

    @task(2)
    def revalidate_streams(self):
        # Second request with the ETag should be answered with 304 if ETag handling is enabled
        url = f"{self.prefix}/stream/movie/{MOVIE_IDS[0]}.json"
        response = self.client.get(url, name="/stream/movie/[id].json")
        etag = response.headers.get("ETag")
        if etag:
            self.client.get(url, headers={"If-None-Match": etag}, name="/stream/movie/[id].json (304)")
