"""Thin httpx GraphQL client for the Linear API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from tasklink.contracts.exceptions import (
    AuthenticationError,
    ProviderError,
    RateLimitedError,
    TransientRemoteError,
)

_LOG = logging.getLogger(__name__)

# Server errors that usually clear on their own.
_TRANSIENT_STATUS_CODES = frozenset({500, 502, 503, 504})


class RemoteNotFoundError(ProviderError):
    """GraphQL query referenced an entity that does not exist."""


class LinearClient:
    """Posts GraphQL documents and maps failures onto the tasklink error hierarchy.

    The client never retries on its own; retry and pacing belong to the batch
    executor, which only retries ``TransientRemoteError``.
    """

    def __init__(
        self,
        *,
        api_url: str,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._api_url = api_url
        self._token = token
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def open(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            headers={"Authorization": self._token, "Content-Type": "application/json"},
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        if self._client is None:
            raise ProviderError("Linear client is not initialized. Use 'async with'.")

        try:
            response = await self._client.post("", json={"query": query, "variables": variables or {}})
        except httpx.TimeoutException as exc:
            raise TransientRemoteError(f"Linear request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientRemoteError(f"Linear transport error: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitedError("Linear rate limit exceeded", retry_after=_parse_retry_after(response))
        if response.status_code in {401, 403}:
            raise AuthenticationError(f"Linear rejected credentials (HTTP {response.status_code})")
        if response.status_code in _TRANSIENT_STATUS_CODES:
            raise TransientRemoteError(f"Linear returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(f"Linear returned a non-JSON response (HTTP {response.status_code})") from exc

        errors = payload.get("errors") or []
        if errors:
            _raise_for_errors(errors, response)
        if response.status_code >= 400:
            raise ProviderError(f"Linear returned HTTP {response.status_code}")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ProviderError("GraphQL response missing data payload")
        return data


def _error_code(error: dict[str, Any]) -> str:
    extensions = error.get("extensions") or {}
    code = extensions.get("code") or extensions.get("type") or ""
    return str(code).upper()


def _raise_for_errors(errors: list[dict[str, Any]], response: httpx.Response) -> None:
    codes = {_error_code(error) for error in errors}
    messages = "; ".join(str(error.get("message", "")) for error in errors)
    if "RATELIMITED" in codes:
        raise RateLimitedError(f"Linear rate limit exceeded: {messages}", retry_after=_parse_retry_after(response))
    if codes & {"AUTHENTICATION_ERROR", "FORBIDDEN"}:
        raise AuthenticationError(f"Linear rejected credentials: {messages}")
    if "ENTITY_NOT_FOUND" in codes or "not found" in messages.casefold():
        raise RemoteNotFoundError(messages)
    _LOG.debug("Linear GraphQL errors: %s", errors)
    raise ProviderError(f"GraphQL returned errors: {messages}")


def _parse_retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None
