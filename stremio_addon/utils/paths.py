"""
Path Helpers
Route patterns of the protocol resources, matched against the raw request path
"""
import re
from typing import Optional
from urllib.parse import quote

from starlette.requests import Request

# "/[userData/]catalog/{type}/{id}.json" and the same for streams.
# Segments can be empty so that the guard can reject them with 400.
RESOURCE_PATH = re.compile(
    r"^/(?:(?P<user_data>[^/]+)/)?(?P<resource>catalog|stream)/(?P<type>[^/]*)/(?P<id>[^/]*)\.json$"
)
MANIFEST_PATH = re.compile(r"^/(?:(?P<user_data>[^/]+)/)?manifest\.json$")


def raw_path(request: Request) -> str:
    """
    The request path as it was sent, still URL-escaped

    Starlette unescapes `scope["path"]` before routing, but user data and
    IDs must be unescaped exactly once by us.
    """
    raw = request.scope.get("raw_path")
    if raw is None:
        return quote(request.scope["path"])
    return raw.split(b"?", 1)[0].decode("latin-1")


def match_resource(request: Request) -> Optional[re.Match]:
    return RESOURCE_PATH.match(raw_path(request))


def raw_user_data(request: Request) -> str:
    """The escaped user data segment of a protocol resource request, "" if absent"""
    path = raw_path(request)
    match = RESOURCE_PATH.match(path) or MANIFEST_PATH.match(path)
    if match is None:
        return ""
    return match.group("user_data") or ""


def prefix_pattern(prefix: str) -> re.Pattern:
    """
    Compile a path prefix like "/{user_data}/stream" into a regex

    Placeholders match exactly one path segment.
    """
    parts = re.split(r"\{[^/{}]+\}", prefix.rstrip("/"))
    pattern = "[^/]+".join(re.escape(part) for part in parts)
    return re.compile(f"^{pattern}(?:/|$)")
