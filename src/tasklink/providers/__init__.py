"""Issue-tracker implementations and factory."""

from tasklink.providers.factory import create_tracker
from tasklink.providers.linear import LinearTracker
from tasklink.providers.memory import InMemoryTracker

__all__ = ["InMemoryTracker", "LinearTracker", "create_tracker"]
