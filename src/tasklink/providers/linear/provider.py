"""Linear issue-tracker adapter."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

import httpx

from tasklink.contracts.exceptions import ProviderError
from tasklink.contracts.remote import CreateObjectInput, IssueTracker, RemoteObject, RemoteStatus
from tasklink.providers.linear.client import LinearClient, RemoteNotFoundError

_LOG = logging.getLogger(__name__)

_ISSUE_FIELDS = "id identifier title description url team { id } parent { id } state { id name type }"

_TEAM_STATES_QUERY = "query($teamId:String!){ team(id:$teamId){ id states(first:100){ nodes { id name type } } } }"

_ISSUE_QUERY = f"query($id:String!){{ issue(id:$id){{ {_ISSUE_FIELDS} }} }}"

_LIST_QUERY = (
    "query($teamId:String!, $after:String, $filter:IssueFilter){ "
    "team(id:$teamId){ issues(first:100, after:$after, filter:$filter){ "
    f"nodes {{ {_ISSUE_FIELDS} }} pageInfo {{ hasNextPage endCursor }} }} }} }}"
)

_CREATE_MUTATION = (
    "mutation($input:IssueCreateInput!){ "
    f"issueCreate(input:$input){{ success issue {{ {_ISSUE_FIELDS} }} }} }}"
)

_UPDATE_MUTATION = (
    "mutation($id:String!, $input:IssueUpdateInput!){ "
    f"issueUpdate(id:$id, input:$input){{ success issue {{ {_ISSUE_FIELDS} }} }} }}"
)

_COMMENT_MUTATION = "mutation($input:CommentCreateInput!){ commentCreate(input:$input){ success } }"

# Workflow-state type reported by Linear for each remote status, used when no
# state is named after the status.
_STATE_TYPES: dict[RemoteStatus, tuple[str, ...]] = {
    RemoteStatus.BACKLOG: ("backlog", "unstarted"),
    RemoteStatus.IN_PROGRESS: ("started",),
    RemoteStatus.IN_REVIEW: ("started",),
    RemoteStatus.DONE: ("completed",),
    RemoteStatus.BLOCKED: ("started", "unstarted"),
    RemoteStatus.CANCELLED: ("canceled",),
}

_STATE_NAMES: dict[RemoteStatus, tuple[str, ...]] = {
    RemoteStatus.BACKLOG: ("backlog", "todo"),
    RemoteStatus.IN_PROGRESS: ("in progress",),
    RemoteStatus.IN_REVIEW: ("in review", "review"),
    RemoteStatus.DONE: ("done",),
    RemoteStatus.BLOCKED: ("blocked",),
    RemoteStatus.CANCELLED: ("canceled", "cancelled"),
}


class LinearTracker(IssueTracker):
    """Maps the tracker contract onto Linear teams, issues and sub-issues.

    A team is the container; an issue's ``identifier`` (``ENG-42``) is its
    human-facing handle. Workflow states are resolved once per session in
    ``__aenter__``.
    """

    def __init__(
        self,
        *,
        token: str,
        team_id: str,
        api_url: str = "https://api.linear.app/graphql",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._team_id = team_id
        self._client = LinearClient(api_url=api_url, token=token, transport=transport)
        self._state_ids: dict[RemoteStatus, str] = {}
        self._state_status: dict[str, RemoteStatus] = {}

    async def __aenter__(self) -> LinearTracker:
        await self._client.open()
        try:
            await self._resolve_workflow_states()
        except BaseException:
            await self._client.aclose()
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self._client.aclose()

    async def create_object(self, input: CreateObjectInput) -> RemoteObject:
        payload: dict[str, Any] = {
            "teamId": input.container_id,
            "title": input.title,
            "description": input.body,
        }
        if input.parent_remote_id is not None:
            payload["parentId"] = input.parent_remote_id
        if input.assignee_id is not None:
            payload["assigneeId"] = input.assignee_id
        backlog_state = self._state_ids.get(RemoteStatus.BACKLOG)
        if backlog_state is not None:
            payload["stateId"] = backlog_state

        data = await self._client.execute(_CREATE_MUTATION, {"input": payload})
        return self._issue_from_mutation(data, "issueCreate")

    async def update_object_status(self, remote_id: str, status: RemoteStatus) -> RemoteObject:
        state_id = self._state_ids.get(status)
        if state_id is None:
            raise ProviderError(f"No Linear workflow state maps to status {status.value!r}")
        data = await self._client.execute(_UPDATE_MUTATION, {"id": remote_id, "input": {"stateId": state_id}})
        return self._issue_from_mutation(data, "issueUpdate")

    async def get_object(self, remote_id: str) -> RemoteObject | None:
        try:
            data = await self._client.execute(_ISSUE_QUERY, {"id": remote_id})
        except RemoteNotFoundError:
            return None
        node = data.get("issue")
        if not isinstance(node, dict):
            return None
        return self._object_from_node(node)

    async def list_objects(self, container_id: str, title_query: str | None = None) -> list[RemoteObject]:
        issue_filter = {"title": {"containsIgnoreCase": title_query}} if title_query else None
        objects: list[RemoteObject] = []
        cursor: str | None = None
        while True:
            data = await self._client.execute(
                _LIST_QUERY,
                {"teamId": container_id, "after": cursor, "filter": issue_filter},
            )
            team = data.get("team")
            if not isinstance(team, dict):
                raise ProviderError(f"Linear team not found: {container_id}")
            connection = team.get("issues") or {}
            objects.extend(self._object_from_node(node) for node in connection.get("nodes", []))
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return objects
            cursor = page_info.get("endCursor")

    async def add_comment(self, remote_id: str, text: str) -> None:
        data = await self._client.execute(_COMMENT_MUTATION, {"input": {"issueId": remote_id, "body": text}})
        if not (data.get("commentCreate") or {}).get("success"):
            raise ProviderError(f"Linear did not accept comment on {remote_id}")

    async def _resolve_workflow_states(self) -> None:
        data = await self._client.execute(_TEAM_STATES_QUERY, {"teamId": self._team_id})
        team = data.get("team")
        if not isinstance(team, dict):
            raise ProviderError(f"Linear team not found: {self._team_id}")
        states: list[dict[str, Any]] = (team.get("states") or {}).get("nodes", [])
        self._state_ids = self._map_states(states)
        self._state_status = {}
        for status, state_id in self._state_ids.items():
            self._state_status.setdefault(state_id, status)
        # States the table did not claim still need a status when read back.
        for state in states:
            if state["id"] not in self._state_status:
                self._state_status[state["id"]] = self._status_for_type(str(state.get("type", "")))
        missing = [status.value for status in RemoteStatus if status not in self._state_ids]
        if missing:
            _LOG.warning("Linear team %s has no workflow state for: %s", self._team_id, ", ".join(missing))

    @staticmethod
    def _map_states(states: list[dict[str, Any]]) -> dict[RemoteStatus, str]:
        mapped: dict[RemoteStatus, str] = {}
        for status in RemoteStatus:
            names = _STATE_NAMES[status]
            by_name = next((s for s in states if str(s.get("name", "")).casefold() in names), None)
            if by_name is not None:
                mapped[status] = by_name["id"]
        for status in RemoteStatus:
            if status in mapped:
                continue
            claimed = set(mapped.values())
            typed = [s for s in states if s.get("type") in _STATE_TYPES[status]]
            by_type = next((s for s in typed if s["id"] not in claimed), typed[0] if typed else None)
            if by_type is not None:
                mapped[status] = by_type["id"]
        return mapped

    @staticmethod
    def _status_for_type(state_type: str) -> RemoteStatus:
        if state_type == "started":
            return RemoteStatus.IN_PROGRESS
        if state_type == "completed":
            return RemoteStatus.DONE
        if state_type == "canceled":
            return RemoteStatus.CANCELLED
        return RemoteStatus.BACKLOG

    def _issue_from_mutation(self, data: dict[str, Any], field: str) -> RemoteObject:
        result = data.get(field) or {}
        node = result.get("issue")
        if not result.get("success") or not isinstance(node, dict):
            raise ProviderError(f"Linear {field} did not succeed")
        return self._object_from_node(node)

    def _object_from_node(self, node: dict[str, Any]) -> RemoteObject:
        state = node.get("state") or {}
        status = self._state_status.get(state.get("id", ""))
        if status is None:
            status = self._status_for_type(str(state.get("type", "")))
        return RemoteObject(
            remote_id=node["id"],
            remote_number=node["identifier"],
            title=node.get("title", ""),
            body=node.get("description") or "",
            container_id=(node.get("team") or {}).get("id", self._team_id),
            parent_remote_id=(node.get("parent") or {}).get("id"),
            status=status,
            url=node.get("url"),
        )
