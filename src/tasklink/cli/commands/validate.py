"""Validate command formatting."""

from __future__ import annotations

import argparse

from tasklink import ValidationReport
from tasklink.cli.common import format_comma_or_none, plural


def format_validation_summary(report: ValidationReport) -> str:
    lines = [
        "",
        f"tasklink - validation of {report.subtree_root}",
        "",
        f"  Checked:      {plural(len(report.expected), 'work item')}",
        f"  Unlinked:     {format_comma_or_none(report.unlinked)}",
        f"  Orphaned:     {format_comma_or_none(report.orphaned)}",
        f"  Mismatched:   {format_comma_or_none(report.mismatched)}",
        f"  Not observed: {format_comma_or_none(report.missing)}",
        f"  Status drift: {format_comma_or_none(report.status_drift)}",
        "",
        "  Result:       ok" if report.ok else "  Result:       needs reconcile",
        "",
    ]
    return "\n".join(lines)


async def run_validate(args: argparse.Namespace) -> ValidationReport:
    import tasklink.cli as cli

    config = cli.load_config(args.config)
    tl = await cli.TaskLink.from_config(config)
    report = await tl.validate(args.root)
    print(cli._format_validation_summary(report))
    return report


__all__ = ["format_validation_summary", "run_validate"]
