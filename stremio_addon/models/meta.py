"""
Cinemeta Models
Movie / TV show metadata as returned by Cinemeta
"""
from pydantic import BaseModel, ConfigDict
from typing import List, Optional


class Meta(BaseModel):
    """A movie or TV show"""
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    type: str = ""
    name: str = ""

    genres: Optional[List[str]] = None
    director: Optional[List[str]] = None
    cast: Optional[List[str]] = None
    poster: Optional[str] = None
    posterShape: Optional[str] = None
    background: Optional[str] = None
    logo: Optional[str] = None
    description: Optional[str] = None
    releaseInfo: Optional[str] = None  # a.k.a. year
    imdbRating: Optional[str] = None
    released: Optional[str] = None  # ISO 8601
    runtime: Optional[str] = None
    language: Optional[str] = None
    country: Optional[str] = None
    awards: Optional[str] = None
    website: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.releaseInfo or '?'})"
