"""CLI parser construction."""

from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version


def _package_version() -> str:
    try:
        return version("tasklink")
    except PackageNotFoundError:
        return "0.0.0"


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default="./tasklink.json", help="Path to tasklink.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tasklink")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile_parser = subparsers.add_parser("reconcile", help="Link a task subtree to remote issues")
    reconcile_parser.add_argument("root", help="Task or subtask id to reconcile (e.g. 12 or 12.3)")
    reconcile_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run against an in-memory tracker; sync records go to <metadata_path>.dry-run",
    )
    _add_common_arguments(reconcile_parser)

    status_parser = subparsers.add_parser("status", help="Set a task status and mirror it remotely")
    status_parser.add_argument("work_item_id", help="Task or subtask id")
    status_parser.add_argument("status", help="New status (pending, in-progress, review, done, blocked, cancelled)")
    status_parser.add_argument("--dry-run", action="store_true", help="Preview mode")
    _add_common_arguments(status_parser)

    validate_parser = subparsers.add_parser("validate", help="Check a subtree's links without writing")
    validate_parser.add_argument("root", help="Task or subtask id to check")
    _add_common_arguments(validate_parser)

    return parser


__all__ = ["build_parser"]
