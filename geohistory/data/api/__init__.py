"""API client layer between the relation resolver and the remote API."""

from geohistory.data.api.base import APIClient, RemoteSource
from geohistory.data.api.client import CachedAPIClient

__all__ = [
    "APIClient",
    "CachedAPIClient",
    "RemoteSource",
]
