"""CLI progress displays."""

from tasklink.cli.progress.rich import RichSyncProgress

__all__ = ["RichSyncProgress"]
