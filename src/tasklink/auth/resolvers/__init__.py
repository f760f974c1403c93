"""Concrete token resolvers."""

from tasklink.auth.resolvers.env import EnvTokenResolver
from tasklink.auth.resolvers.static import StaticTokenResolver

__all__ = ["EnvTokenResolver", "StaticTokenResolver"]
