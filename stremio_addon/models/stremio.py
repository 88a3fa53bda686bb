"""
Stremio Protocol Models
Pydantic models for the Stremio addon protocol
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Union


class StremioModel(BaseModel):
    """Base for protocol objects. Unset optional fields are left out of the JSON."""

    def to_json(self) -> bytes:
        return self.model_dump_json(exclude_none=True).encode("utf-8")


class ResourceItem(StremioModel):
    """Resource capability declaration in the manifest"""
    name: str
    types: Optional[List[str]] = None  # Stremio supports "movie", "series", "channel" and "tv"
    idPrefixes: Optional[List[str]] = None


class ExtraItem(StremioModel):
    """Extra query parameter a catalog accepts (e.g. "search", "genre", "skip")"""
    name: str
    isRequired: Optional[bool] = None
    options: Optional[List[str]] = None
    optionsLimit: Optional[int] = None


class CatalogItem(StremioModel):
    """Catalog definition in manifest"""
    type: str
    id: str
    name: str
    extra: Optional[List[ExtraItem]] = None


class BehaviorHints(StremioModel):
    adult: bool = False
    p2p: bool = False
    configurable: bool = False
    # True at "/manifest.json", always false at "/{userData}/manifest.json",
    # otherwise Stremio doesn't show its "Install" button.
    configurationRequired: bool = False


class Manifest(StremioModel):
    """Stremio addon manifest"""
    id: str
    name: str
    description: str
    version: str

    resources: Optional[List[Union[ResourceItem, str]]] = None
    types: Optional[List[str]] = None
    # Stremio expects the key to be present, so catalog-less addons should pass []
    catalogs: Optional[List[CatalogItem]] = None

    idPrefixes: Optional[List[str]] = None
    background: Optional[str] = None  # URL
    logo: Optional[str] = None  # URL
    contactEmail: Optional[str] = None
    behaviorHints: BehaviorHints = Field(default_factory=BehaviorHints)

    def clone(self) -> "Manifest":
        """
        Deep copy of the manifest

        Every nested list is a new object in the copy, and lists that are
        None stay None (they're omitted in the JSON instead of being "[]").
        """
        return self.model_copy(deep=True)


class MetaLinkItem(StremioModel):
    name: str
    category: str
    url: str


class MetaPreviewItem(StremioModel):
    """Catalog item (poster) metadata"""
    id: str
    type: str
    name: str
    poster: Optional[str] = None  # URL
    posterShape: Optional[str] = None

    # Used for the "Discover" page sidebar
    genres: Optional[List[str]] = None
    director: Optional[List[str]] = None
    cast: Optional[List[str]] = None
    links: Optional[List[MetaLinkItem]] = None
    imdbRating: Optional[str] = None
    releaseInfo: Optional[str] = None  # "2000" for movies, "2000-2014" or "2000-" for TV shows
    description: Optional[str] = None


class StreamItem(StremioModel):
    """A playable stream for a movie or episode"""
    # One of these is required
    url: Optional[str] = None
    ytId: Optional[str] = None
    infoHash: Optional[str] = None
    externalUrl: Optional[str] = None

    title: Optional[str] = None  # usually the stream quality
    name: Optional[str] = None
    fileIdx: Optional[int] = None  # only together with infoHash
