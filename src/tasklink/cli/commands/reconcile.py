"""Reconcile command formatting."""

from __future__ import annotations

import argparse

from tasklink import ReconciliationReport, TaskLinkConfig
from tasklink.cli.common import format_comma_or_none, plural
from tasklink.cli.progress.rich import RichSyncProgress
from tasklink.persistence import output_metadata_path


def format_reconcile_summary(report: ReconciliationReport, config: TaskLinkConfig, *, dry_run: bool) -> str:
    mode = "dry-run" if dry_run else "apply"
    total = len(report.outcomes)
    created = report.created
    linked_existing = [item for item in report.linked if item not in created]

    lines = [
        "",
        f"tasklink - reconcile complete ({mode})",
        "",
        f"  Root:      {report.subtree_root}",
        f"  Container: {config.container_id}",
        "",
        f"  Items:     {plural(total, 'work item')}",
        f"  Created:   {format_comma_or_none(created)}",
        f"  Linked:    {format_comma_or_none(linked_existing)}",
    ]
    if report.flagged:
        lines.append(f"  Review:    {format_comma_or_none(report.flagged)} (possible duplicates)")
    if report.failed:
        lines.append(f"  Failed:    {format_comma_or_none(report.failed)}")
        for item_id in report.failed:
            lines.append(f"    {item_id}: {report.outcomes[item_id].error}")
    if report.recovery is not None and report.recovery.recovered:
        lines.append(f"  Recovered: {format_comma_or_none(report.recovery.recovered)}")
    if report.cancelled:
        lines.append("  Status:    cancelled before completion")
    elif not created and not report.failed:
        lines.append("  Status:    all items up to date")
    lines.append(f"  Writes:    {report.remote_writes}")

    lines.append("")
    records_path = output_metadata_path(metadata_path=config.metadata_path, dry_run=dry_run)
    lines.append(f"  Records:   {records_path}")

    if dry_run:
        lines.append("")
        lines.append("  [dry-run] No changes were made")

    lines.append("")
    return "\n".join(lines)


async def run_reconcile(args: argparse.Namespace) -> ReconciliationReport:
    import tasklink.cli as cli

    config = cli.load_config(args.config)

    if not args.verbose:
        with RichSyncProgress() as progress:
            tl = await cli.TaskLink.from_config(config, dry_run=args.dry_run, progress=progress)
            report = await tl.reconcile(args.root)
    else:
        tl = await cli.TaskLink.from_config(config, dry_run=args.dry_run)
        report = await tl.reconcile(args.root)

    print(cli._format_reconcile_summary(report, config, dry_run=args.dry_run))
    return report


__all__ = ["format_reconcile_summary", "run_reconcile"]
