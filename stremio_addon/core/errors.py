"""
Addon Errors
Exceptions handlers raise to signal protocol-level outcomes
"""


class AddonError(Exception):
    """Base class for all addon errors"""


class NotFound(AddonError):
    """The requested catalog / media item doesn't exist. Leads to a 404 response."""


class BadRequest(AddonError):
    """The client sent a bad request. Leads to a 400 response."""


class BadUserData(BadRequest):
    """User data in the URL couldn't be decoded or deserialized"""


class InvariantViolation(AddonError):
    """Something the addon constructed itself turned out invalid. Always a 500."""


class AddonConfigError(AddonError, ValueError):
    """Invalid addon construction (manifest, handlers or options)"""


class MetaFetchError(AddonError):
    """Metadata for a movie or TV show couldn't be fetched"""
