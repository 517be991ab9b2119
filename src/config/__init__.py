"""Configuration module for application settings."""

from .settings import settings, Settings
from .storage import get_storage_client, get_file_url
from .redis import get_redis, close_redis

__all__ = [
    "settings",
    "Settings",
    "get_storage_client",
    "get_file_url",
    "get_redis",
    "close_redis",
]
