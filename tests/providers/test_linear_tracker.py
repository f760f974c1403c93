from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from tasklink.contracts.exceptions import (
    AuthenticationError,
    ProviderError,
    RateLimitedError,
    TransientRemoteError,
)
from tasklink.contracts.remote import CreateObjectInput, RemoteStatus
from tasklink.providers.linear import LinearClient, LinearTracker, RemoteNotFoundError

API_URL = "https://linear.test/graphql"

STATES = [
    {"id": "s-backlog", "name": "Backlog", "type": "backlog"},
    {"id": "s-progress", "name": "In Progress", "type": "started"},
    {"id": "s-review", "name": "In Review", "type": "started"},
    {"id": "s-blocked", "name": "Blocked", "type": "started"},
    {"id": "s-done", "name": "Done", "type": "completed"},
    {"id": "s-cancel", "name": "Canceled", "type": "canceled"},
]


def _issue(
    issue_id: str,
    identifier: str,
    title: str,
    *,
    state: str = "s-backlog",
    parent: str | None = None,
    states: list[dict[str, str]] = STATES,
) -> dict[str, Any]:
    state_node = next(s for s in states if s["id"] == state)
    return {
        "id": issue_id,
        "identifier": identifier,
        "title": title,
        "description": None,
        "url": f"https://linear.app/acme/issue/{identifier}",
        "team": {"id": "team-1"},
        "parent": {"id": parent} if parent else None,
        "state": state_node,
    }


class LinearStub:
    """Answers the GraphQL documents the tracker sends and records them."""

    def __init__(self, states: list[dict[str, str]] | None = None) -> None:
        self.states = STATES if states is None else states
        self.requests: list[dict[str, Any]] = []
        self.headers: list[httpx.Headers] = []
        self.pages: list[dict[str, Any]] = []
        self.override: Callable[[dict[str, Any]], httpx.Response | None] | None = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        self.headers.append(request.headers)
        if self.override is not None:
            response = self.override(body)
            if response is not None:
                return response
        query: str = body["query"]
        variables: dict[str, Any] = body["variables"]
        if "states(" in query:
            return httpx.Response(200, json={"data": {"team": {"id": "team-1", "states": {"nodes": self.states}}}})
        if "issueCreate" in query:
            payload = variables["input"]
            state = payload.get("stateId", "s-backlog")
            issue = _issue("iss-9", "ENG-9", payload["title"], state=state, states=self.states)
            issue["parent"] = {"id": payload["parentId"]} if "parentId" in payload else None
            return httpx.Response(200, json={"data": {"issueCreate": {"success": True, "issue": issue}}})
        if "issueUpdate" in query:
            state = variables["input"]["stateId"]
            issue = _issue(variables["id"], "ENG-4", "Tune cache eviction", state=state, states=self.states)
            return httpx.Response(200, json={"data": {"issueUpdate": {"success": True, "issue": issue}}})
        if "commentCreate" in query:
            return httpx.Response(200, json={"data": {"commentCreate": {"success": True}}})
        if "issues(" in query:
            page = self.pages.pop(0)
            return httpx.Response(200, json={"data": {"team": {"issues": page}}})
        if "issue(" in query:
            issue = _issue(variables["id"], "ENG-4", "Tune cache eviction", state="s-review", parent="iss-1")
            return httpx.Response(200, json={"data": {"issue": issue}})
        raise AssertionError(f"unexpected query: {query}")


def _tracker(stub: LinearStub) -> LinearTracker:
    return LinearTracker(token="lin_api_secret", team_id="team-1", api_url=API_URL, transport=stub.transport())


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> LinearClient:
    return LinearClient(api_url=API_URL, token="lin_api_secret", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_enter_resolves_workflow_states_and_sends_raw_key() -> None:
    stub = LinearStub()

    async with _tracker(stub):
        pass

    assert stub.requests[0]["variables"] == {"teamId": "team-1"}
    assert stub.headers[0]["Authorization"] == "lin_api_secret"


@pytest.mark.asyncio
async def test_create_object_sends_parent_assignee_and_backlog_state() -> None:
    stub = LinearStub()

    async with _tracker(stub) as tracker:
        remote = await tracker.create_object(
            CreateObjectInput(
                title="Design token schema",
                body="Schema for access tokens.",
                container_id="team-1",
                parent_remote_id="iss-1",
                assignee_id="user-7",
            )
        )

    sent = stub.requests[-1]["variables"]["input"]
    assert sent == {
        "teamId": "team-1",
        "title": "Design token schema",
        "description": "Schema for access tokens.",
        "parentId": "iss-1",
        "assigneeId": "user-7",
        "stateId": "s-backlog",
    }
    assert remote.remote_id == "iss-9"
    assert remote.remote_number == "ENG-9"
    assert remote.parent_remote_id == "iss-1"
    assert remote.status == RemoteStatus.BACKLOG


@pytest.mark.asyncio
async def test_update_status_uses_mapped_state() -> None:
    stub = LinearStub()

    async with _tracker(stub) as tracker:
        blocked = await tracker.update_object_status("iss-4", RemoteStatus.BLOCKED)
        done = await tracker.update_object_status("iss-4", RemoteStatus.DONE)

    assert stub.requests[1]["variables"] == {"id": "iss-4", "input": {"stateId": "s-blocked"}}
    assert blocked.status == RemoteStatus.BLOCKED
    assert done.status == RemoteStatus.DONE


@pytest.mark.asyncio
async def test_states_fall_back_to_type_and_missing_status_fails(caplog: pytest.LogCaptureFixture) -> None:
    stub = LinearStub(
        states=[
            {"id": "s-todo", "name": "Todo", "type": "unstarted"},
            {"id": "s-doing", "name": "Doing", "type": "started"},
            {"id": "s-shipped", "name": "Shipped", "type": "completed"},
        ]
    )

    with caplog.at_level(logging.WARNING, logger="tasklink.providers.linear.provider"):
        async with _tracker(stub) as tracker:
            review = await tracker.update_object_status("iss-4", RemoteStatus.IN_REVIEW)
            with pytest.raises(ProviderError, match="cancelled"):
                await tracker.update_object_status("iss-4", RemoteStatus.CANCELLED)

    assert stub.requests[1]["variables"]["input"] == {"stateId": "s-doing"}
    assert review.status == RemoteStatus.IN_PROGRESS
    assert "cancelled" in caplog.text


@pytest.mark.asyncio
async def test_get_object_maps_issue_and_returns_none_when_missing() -> None:
    stub = LinearStub()

    async with _tracker(stub) as tracker:
        found = await tracker.get_object("iss-4")
        stub.override = lambda body: httpx.Response(
            200,
            json={"data": None, "errors": [{"message": "Entity not found", "extensions": {"code": "ENTITY_NOT_FOUND"}}]},
        )
        missing = await tracker.get_object("iss-404")

    assert found is not None
    assert found.remote_number == "ENG-4"
    assert found.parent_remote_id == "iss-1"
    assert found.status == RemoteStatus.IN_REVIEW
    assert found.url == "https://linear.app/acme/issue/ENG-4"
    assert missing is None


@pytest.mark.asyncio
async def test_list_objects_follows_pagination() -> None:
    stub = LinearStub()
    stub.pages = [
        {
            "nodes": [_issue("iss-1", "ENG-1", "Build auth service")],
            "pageInfo": {"hasNextPage": True, "endCursor": "c1"},
        },
        {
            "nodes": [_issue("iss-2", "ENG-2", "Design token schema", parent="iss-1")],
            "pageInfo": {"hasNextPage": False, "endCursor": None},
        },
    ]

    async with _tracker(stub) as tracker:
        found = await tracker.list_objects("team-1", "auth")

    assert [remote.remote_number for remote in found] == ["ENG-1", "ENG-2"]
    assert stub.requests[1]["variables"] == {
        "teamId": "team-1",
        "after": None,
        "filter": {"title": {"containsIgnoreCase": "auth"}},
    }
    assert stub.requests[2]["variables"]["after"] == "c1"


@pytest.mark.asyncio
async def test_add_comment_rejected_raises() -> None:
    stub = LinearStub()

    async with _tracker(stub) as tracker:
        await tracker.add_comment("iss-4", "linked by tasklink")
        stub.override = lambda body: httpx.Response(200, json={"data": {"commentCreate": {"success": False}}})
        with pytest.raises(ProviderError, match="did not accept comment"):
            await tracker.add_comment("iss-4", "again")

    assert stub.requests[1]["variables"] == {"input": {"issueId": "iss-4", "body": "linked by tasklink"}}


@pytest.mark.asyncio
async def test_unknown_team_fails_on_enter() -> None:
    stub = LinearStub()
    stub.override = lambda body: httpx.Response(200, json={"data": {"team": None}})

    with pytest.raises(ProviderError, match="team not found"):
        async with _tracker(stub):
            pass


@pytest.mark.asyncio
async def test_client_http_429_is_rate_limited_with_retry_after() -> None:
    client = _client(lambda request: httpx.Response(429, headers={"Retry-After": "7"}, json={}))
    await client.open()
    try:
        with pytest.raises(RateLimitedError) as exc_info:
            await client.execute("query { viewer { id } }")
    finally:
        await client.aclose()

    assert exc_info.value.retry_after == 7.0


@pytest.mark.asyncio
async def test_client_graphql_ratelimited_code() -> None:
    client = _client(
        lambda request: httpx.Response(
            400, json={"errors": [{"message": "Rate limit exceeded", "extensions": {"code": "RATELIMITED"}}]}
        )
    )
    await client.open()
    try:
        with pytest.raises(RateLimitedError):
            await client.execute("query { viewer { id } }")
    finally:
        await client.aclose()


@pytest.mark.parametrize(
    ("response", "error"),
    [
        (httpx.Response(401, json={}), AuthenticationError),
        (httpx.Response(503, text="unavailable"), TransientRemoteError),
        (httpx.Response(200, text="<html>"), ProviderError),
        (
            httpx.Response(200, json={"errors": [{"message": "Forbidden", "extensions": {"type": "FORBIDDEN"}}]}),
            AuthenticationError,
        ),
        (httpx.Response(200, json={"errors": [{"message": "Argument invalid"}]}), ProviderError),
        (httpx.Response(200, json={"data": None}), ProviderError),
    ],
)
@pytest.mark.asyncio
async def test_client_maps_failures(response: httpx.Response, error: type[Exception]) -> None:
    client = _client(lambda request: response)
    await client.open()
    try:
        with pytest.raises(error):
            await client.execute("query { viewer { id } }")
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_client_transport_error_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    await client.open()
    try:
        with pytest.raises(TransientRemoteError, match="transport error"):
            await client.execute("query { viewer { id } }")
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_client_not_found_error_is_distinct() -> None:
    client = _client(lambda request: httpx.Response(200, json={"errors": [{"message": "Issue not found"}]}))
    await client.open()
    try:
        with pytest.raises(RemoteNotFoundError):
            await client.execute("query { issue(id: \"x\") { id } }")
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_client_requires_open() -> None:
    client = _client(lambda request: httpx.Response(200, json={"data": {}}))

    with pytest.raises(ProviderError, match="not initialized"):
        await client.execute("query { viewer { id } }")
