"""Work-item store implementations."""

from tasklink.stores.task_file import TaskFileStore, parse_status

__all__ = ["TaskFileStore", "parse_status"]
