"""
User Data Codec
Handles encoding/decoding of user configuration carried in addon URLs
"""
import base64
import binascii
import logging
from typing import Any, Callable, Optional, Type
from urllib.parse import quote, unquote

from pydantic import BaseModel, ValidationError

from stremio_addon.core.errors import BadUserData

logger = logging.getLogger(__name__)

Decoder = Callable[[bytes], Any]
Encoder = Callable[[Any], bytes]


def _model_encoder(value: Any) -> bytes:
    if isinstance(value, BaseModel):
        return value.model_dump_json().encode("utf-8")
    raise TypeError(f"Can't encode {type(value).__name__} as user data")


class UserDataCodec:
    """
    Decodes the optional user data path segment

    Without a decoder the user data is opaque and handed to handlers as the
    unescaped string. With a decoder (typically a pydantic model's
    `model_validate_json`) the token is turned into bytes first (URL
    unescaping or URL-safe Base64) and then into a fresh object per request.
    """

    def __init__(
        self,
        decoder: Optional[Decoder] = None,
        base64: bool = False,
        encoder: Optional[Encoder] = None,
    ):
        self.decoder = decoder
        self.base64 = base64
        self.encoder = encoder

    @classmethod
    def for_model(cls, model: Type[BaseModel], base64: bool = False) -> "UserDataCodec":
        """Typed codec that parses user data as JSON into `model`"""
        return cls(decoder=model.model_validate_json, base64=base64, encoder=_model_encoder)

    @property
    def is_opaque(self) -> bool:
        return self.decoder is None

    def decode(self, token: Optional[str]) -> Any:
        """
        Decode a raw (still URL-escaped) path segment

        Args:
            token: The user data segment, or None/"" when the URL had none

        Returns:
            None for absent user data, the unescaped string for opaque
            codecs, otherwise the decoded object

        Raises:
            BadUserData: If the token can't be decoded or deserialized
        """
        if not token:
            return None

        logger.debug(f"Decoding user data: {token}")

        if self.is_opaque:
            return unquote(token)

        if self.base64:
            # Accept values with and without padding
            data = token.rstrip("=")
            data += "=" * (-len(data) % 4)
            try:
                raw = base64.urlsafe_b64decode(data.encode("ascii"))
            except (binascii.Error, ValueError) as e:
                # Most likely an encoding error on the client side
                logger.warning(f"Couldn't decode user data: {e}")
                raise BadUserData("Couldn't decode user data") from e
        else:
            try:
                raw = unquote(token, errors="strict").encode("utf-8")
            except UnicodeDecodeError as e:
                logger.warning(f"Couldn't decode user data: {e}")
                raise BadUserData("Couldn't decode user data") from e

        try:
            user_data = self.decoder(raw)
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Couldn't unmarshal user data: {e}")
            raise BadUserData("Couldn't unmarshal user data") from e

        logger.debug(f"Decoded user data: {user_data!r}")
        return user_data

    def encode(self, value: Any) -> str:
        """
        Encode user data into a URL path segment

        Args:
            value: A model instance for typed codecs, a string for opaque ones

        Returns:
            Token that `decode` turns back into an equal value
        """
        if self.is_opaque:
            return quote(str(value), safe="")
        if self.encoder is None:
            raise TypeError("This codec has no encoder")
        raw = self.encoder(value)
        if self.base64:
            return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
        return quote(raw.decode("utf-8"), safe="")
