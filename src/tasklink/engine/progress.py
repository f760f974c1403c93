"""Phase events emitted while a subtree is reconciled.

One ``reconcile`` call walks up to four phases, always in this order:

``Parent``
    Resolve the subtree root against the tracker and create it if nothing
    matched. Total is always 1.
``Resolve``
    Duplicate resolution for every subtask, one ``item_done`` per subtask.
``Create``
    The batched create of subtasks left unmatched. Recovery resubmissions
    advance this same phase, so it may count past its starting total.
``Status``
    Status pushes for linked items whose remote state lags the local one.
    Skipped entirely when nothing lags.

A parent that fails to link ends the run after ``Parent``; the CLI renders
these events through ``tasklink.cli.progress.RichSyncProgress``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SyncProgress(ABC):
    """Receives phase lifecycle callbacks from ``ReconciliationEngine``."""

    @abstractmethod
    def phase_start(self, phase: str, total: int | None = None) -> None:
        """*total* is the number of work items the phase will touch; ``None`` when unknown."""
        ...  # pragma: no cover

    @abstractmethod
    def item_done(self, phase: str) -> None:
        """One work item in *phase* completed; failed creates and pushes are not counted."""
        ...  # pragma: no cover

    @abstractmethod
    def phase_done(self, phase: str) -> None:
        """Called even when items inside the phase failed; failures live on the report."""
        ...  # pragma: no cover

    @abstractmethod
    def phase_error(self, phase: str, error: BaseException) -> None:
        """The batch behind *phase* raised instead of returning a summary."""
        ...  # pragma: no cover


class NullSyncProgress(SyncProgress):
    """Default when the caller passes no progress sink."""

    def phase_start(self, phase: str, total: int | None = None) -> None:
        pass

    def item_done(self, phase: str) -> None:
        pass

    def phase_done(self, phase: str) -> None:
        pass

    def phase_error(self, phase: str, error: BaseException) -> None:
        pass
