"""Auth module public exports."""

from tasklink.auth.base import TokenResolver
from tasklink.auth.factory import create_token_resolver

__all__ = ["TokenResolver", "create_token_resolver"]
