"""
Configuration for the VKV SDK.

Uses pydantic-settings for environment variable loading.
"""

import logging

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Client configuration loaded from environment."""

    # Storage cluster connection
    host: str = Field(default="localhost", description="Storage node HTTP host")
    port: int = Field(default=8098, description="Storage node HTTP port")
    secure: bool = Field(default=False, description="Use HTTPS")
    timeout: float = Field(default=10.0, description="Request timeout seconds")

    # Addressing defaults
    default_bucket_type: str = Field(default="default", description="Bucket type when none is given")

    # Sent as X-Riak-ClientId on every HTTP request
    client_id: str = Field(default="vkv-client", description="Client id reported to the storage node")

    log_level: str = Field(default="WARNING", description="Log level for the vkv_sdk loggers")

    model_config = {"env_prefix": "VKV_"}

    @property
    def base_url(self) -> str:
        """Full HTTP endpoint of the storage node."""
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.host}:{self.port}"


def configure_logging(settings: ClientSettings) -> None:
    """Apply settings.log_level to the SDK's logger tree."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {settings.log_level}")
    logging.getLogger(__package__ or "vkv_sdk").setLevel(level)
