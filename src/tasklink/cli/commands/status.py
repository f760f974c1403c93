"""Status command formatting."""

from __future__ import annotations

import argparse

from tasklink import ConfigError, SyncResult, WorkItemStatus, WorkItemStoreError
from tasklink.stores import parse_status


def parse_status_argument(raw: str) -> WorkItemStatus:
    try:
        return parse_status(raw)
    except WorkItemStoreError as exc:
        raise ConfigError(f"unknown status: {raw!r}") from exc


def format_status_summary(result: SyncResult) -> str:
    remote = result.remote_id or "unlinked"
    if result.synced:
        return f"{result.work_item_id}: {result.local_status.value} -> {result.remote_status.value} ({remote})"
    return (
        f"{result.work_item_id}: local status set to {result.local_status.value}; "
        f"remote update deferred ({result.error})"
    )


async def run_status(args: argparse.Namespace) -> SyncResult:
    import tasklink.cli as cli

    config = cli.load_config(args.config)
    new_status = parse_status_argument(args.status)

    tl = await cli.TaskLink.from_config(config, dry_run=args.dry_run)
    result = await tl.sync_status(args.work_item_id, new_status)
    print(cli._format_status_summary(result))
    return result


__all__ = ["format_status_summary", "parse_status_argument", "run_status"]
