"""Factory for creating issue-tracker instances."""

from __future__ import annotations

from tasklink.contracts.config import TaskLinkConfig
from tasklink.contracts.exceptions import ConfigError
from tasklink.contracts.remote import IssueTracker
from tasklink.providers.linear.provider import LinearTracker
from tasklink.providers.memory import InMemoryTracker

TRACKERS: frozenset[str] = frozenset({"linear", "memory"})


def create_tracker(config: TaskLinkConfig, *, token: str | None = None, dry_run: bool = False) -> IssueTracker:
    """Create the tracker named by ``config.tracker``.

    Dry runs always get an ``InMemoryTracker`` so no request reaches the
    remote service.
    """
    if config.tracker not in TRACKERS:
        raise ConfigError(f"Unknown tracker: {config.tracker!r}. Available: {', '.join(sorted(TRACKERS))}")
    if dry_run or config.tracker == "memory":
        return InMemoryTracker()
    if not token:
        raise ConfigError(f"Tracker {config.tracker!r} requires an API token")
    return LinearTracker(
        token=token,
        team_id=config.team_id or config.container_id,
        api_url=config.api_url,
    )
