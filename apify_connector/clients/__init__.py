"""Remote job clients."""

from .apify import ApifyClient
from .base import RemoteJobClient

__all__ = ["ApifyClient", "RemoteJobClient"]
