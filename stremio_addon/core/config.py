"""
Configuration Management
Addon options, loadable from keyword arguments or STREMIO_* environment variables
"""
import re
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Options(BaseSettings):
    """Options that configure the addon server"""

    model_config = SettingsConfigDict(
        env_prefix="STREMIO_",
        env_file=".env",
        extra="ignore",
    )

    # Server
    bind_addr: str = "localhost"  # "0.0.0.0" to accept requests from other machines
    port: int = 8080
    idle_timeout: int = 60
    shutdown_timeout: int = 9  # `docker stop` gives us 10 seconds

    # Logging
    logging_level: Literal["debug", "info", "warn", "error"] = "info"
    log_encoding: Literal["console", "json"] = "console"
    disable_request_logging: bool = False
    log_ips: bool = False
    log_user_agent: bool = False
    log_media_name: bool = False  # stream requests only

    # Extra endpoints
    redirect_url: str = ""
    metrics: bool = False
    configure_html_dir: Optional[str] = None

    # Client/proxy-side caching (seconds, 0 disables the headers)
    cache_age_catalogs: int = Field(0, ge=0)
    cache_age_streams: int = Field(0, ge=0)
    cache_public_catalogs: bool = False
    cache_public_streams: bool = False
    handle_etag_catalogs: bool = False
    handle_etag_streams: bool = False

    # User data is URL-safe Base64 (RFC 4648) instead of URL-escaped JSON
    user_data_is_base64: bool = False

    # Metadata lookup
    put_meta_in_context: bool = False
    cinemeta_base_url: str = "https://v3-cinemeta.strem.io"
    cinemeta_timeout: float = 2.0
    cinemeta_ttl: int = 30 * 24 * 3600  # 30 days
    redis_url: Optional[str] = None

    # Accepted stream IDs, matched after unescaping. Empty matches anything.
    stream_id_regex: str = ""

    @model_validator(mode="after")
    def validate_caching(self):
        # Caching flags are only meaningful together with a cache age
        if (self.handle_etag_catalogs or self.cache_public_catalogs) and not self.cache_age_catalogs:
            raise ValueError("ETag handling and public caching for catalogs require cache_age_catalogs")
        if (self.handle_etag_streams or self.cache_public_streams) and not self.cache_age_streams:
            raise ValueError("ETag handling and public caching for streams require cache_age_streams")
        try:
            re.compile(self.stream_id_regex)
        except re.error as e:
            raise ValueError(f"Invalid stream_id_regex: {e}") from e
        return self

    @property
    def needs_meta(self) -> bool:
        return self.put_meta_in_context or self.log_media_name
