"""Linear provider."""

from tasklink.providers.linear.client import LinearClient, RemoteNotFoundError
from tasklink.providers.linear.provider import LinearTracker

__all__ = ["LinearClient", "LinearTracker", "RemoteNotFoundError"]
