"""
Request Metrics
Prometheus counters for handled requests, labelled by endpoint and status
"""
import re

from prometheus_client import CollectorRegistry, Counter, generate_latest, CONTENT_TYPE_LATEST

MANIFEST_DATA = re.compile(r"^/.*/manifest\.json$")
CATALOG_DATA = re.compile(r"^/.*/catalog/.*/.*\.json")
STREAM_DATA = re.compile(r"^/.*/stream/.*/.*\.json")

EXACT_ENDPOINTS = {
    "/": "root",
    "/manifest.json": "manifest",
    "/configure": "configure",
    "/health": "health",
    "/metrics": "metrics",
}

PREFIX_ENDPOINTS = (
    ("/catalog", "catalog"),
    ("/stream", "stream"),
    ("/configure", "configure-other"),
)


def classify_endpoint(path: str) -> str:
    """Map a request path to a small, fixed set of metric labels"""
    if path in EXACT_ENDPOINTS:
        return EXACT_ENDPOINTS[path]
    for prefix, endpoint in PREFIX_ENDPOINTS:
        if path.startswith(prefix):
            return endpoint
    if MANIFEST_DATA.match(path):
        return "manifest-data"
    if CATALOG_DATA.match(path):
        return "catalog-data"
    if STREAM_DATA.match(path):
        return "stream-data"
    # An empty label would be valid, but makes dashboards confusing
    return "other"


class RequestMetrics:
    """Counters of one addon, in their own registry"""

    def __init__(self):
        self.registry = CollectorRegistry()
        self.requests = Counter(
            "http_requests",
            "Total number of HTTP requests",
            ["endpoint", "status"],
            registry=self.registry,
        )
        self.errors = Counter(
            "downstream_handlers_errors",
            "Total number of errors from downstream handlers in the metrics middleware",
            registry=self.registry,
        )
        self.invariant_violations = Counter(
            "invariant_violations",
            "Total number of responses the addon itself failed to build (logic bugs)",
            registry=self.registry,
        )

    def observe(self, path: str, status: int):
        self.requests.labels(endpoint=classify_endpoint(path), status=str(status)).inc()

    def render(self) -> bytes:
        return generate_latest(self.registry)

    content_type = CONTENT_TYPE_LATEST
