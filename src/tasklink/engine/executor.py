"""Rate-limited batch execution of remote mutations.

Operations run in fixed-size batches. Inside a batch at most
``max_concurrent`` operations are in flight and consecutive operation starts
(retries included) are spaced by ``start_interval_seconds``. Batch *n + 1*
starts only after every operation of batch *n* has terminated and
``batch_pause_seconds`` have elapsed. Cancellation is observed at the top of
each batch; in-flight operations always run to completion.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from tasklink.contracts.config import RateLimitConfig, RetryPolicy
from tasklink.contracts.exceptions import TransientRemoteError

_LOG = logging.getLogger(__name__)


class Clock(ABC):
    @abstractmethod
    def monotonic(self) -> float: ...  # pragma: no cover

    @abstractmethod
    async def sleep(self, seconds: float) -> None: ...  # pragma: no cover


class SystemClock(Clock):
    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


@dataclass(frozen=True)
class BatchOperation:
    """One idempotent remote mutation, keyed by the work item it serves."""

    key: str
    run: Callable[[], Awaitable[Any]]
    description: str = ""


@dataclass(frozen=True)
class OperationResult:
    key: str
    value: Any
    attempts: int


@dataclass(frozen=True)
class OperationFailure:
    key: str
    error: BaseException
    attempts: int

    @property
    def message(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


@dataclass
class BatchSummary:
    succeeded: list[OperationResult] = field(default_factory=list)
    failed: list[OperationFailure] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return bool(self.skipped)

    def result_for(self, key: str) -> OperationResult | None:
        return next((result for result in self.succeeded if result.key == key), None)

    def failure_for(self, key: str) -> OperationFailure | None:
        return next((failure for failure in self.failed if failure.key == key), None)


class BatchExecutor:
    def __init__(
        self,
        rate_limit: RateLimitConfig | None = None,
        retry: RetryPolicy | None = None,
        *,
        clock: Clock | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._rate_limit = rate_limit or RateLimitConfig()
        self._retry = retry or RetryPolicy()
        self._clock: Clock = clock or SystemClock()
        self._cancel_event = cancel_event
        self._start_lock = asyncio.Lock()
        self._next_start_at: float | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    async def run(self, operations: Sequence[BatchOperation]) -> BatchSummary:
        summary = BatchSummary()
        batch_size = self._rate_limit.batch_size
        batches = [list(operations[i : i + batch_size]) for i in range(0, len(operations), batch_size)]

        for index, batch in enumerate(batches):
            if self.cancelled:
                remaining = [op.key for pending in batches[index:] for op in pending]
                _LOG.warning("Batch execution cancelled; skipping %d operation(s)", len(remaining))
                summary.skipped.extend(remaining)
                break
            if index > 0 and self._rate_limit.batch_pause_seconds > 0:
                await self._clock.sleep(self._rate_limit.batch_pause_seconds)
            await self._run_batch(batch, summary)

        return summary

    async def _run_batch(self, batch: list[BatchOperation], summary: BatchSummary) -> None:
        semaphore = asyncio.Semaphore(self._rate_limit.max_concurrent)
        outcomes: dict[int, OperationResult | OperationFailure] = {}

        async def guarded(position: int, operation: BatchOperation) -> None:
            async with semaphore:
                outcomes[position] = await self._run_with_retry(operation)

        async with asyncio.TaskGroup() as tg:
            for position, operation in enumerate(batch):
                tg.create_task(guarded(position, operation))

        # Submission order, not completion order.
        for position in sorted(outcomes):
            outcome = outcomes[position]
            if isinstance(outcome, OperationResult):
                summary.succeeded.append(outcome)
            else:
                summary.failed.append(outcome)

    async def _run_with_retry(self, operation: BatchOperation) -> OperationResult | OperationFailure:
        attempt = 0
        while True:
            attempt += 1
            await self._wait_for_start_slot()
            try:
                value = await operation.run()
            except TransientRemoteError as exc:
                retries_used = attempt - 1
                if retries_used >= self._retry.max_retries:
                    _LOG.warning("Operation %s failed after %d attempt(s): %s", operation.key, attempt, exc)
                    return OperationFailure(key=operation.key, error=exc, attempts=attempt)
                delay = self._retry.delay_for(attempt)
                if exc.retry_after is not None:
                    delay = max(delay, exc.retry_after)
                _LOG.warning("Retrying %s in %.1fs (attempt %d): %s", operation.key, delay, attempt + 1, exc)
                if delay > 0:
                    await self._clock.sleep(delay)
                continue
            except Exception as exc:
                _LOG.warning("Operation %s failed: %s", operation.key, exc)
                return OperationFailure(key=operation.key, error=exc, attempts=attempt)
            return OperationResult(key=operation.key, value=value, attempts=attempt)

    async def _wait_for_start_slot(self) -> None:
        interval = self._rate_limit.start_interval_seconds
        async with self._start_lock:
            if self._next_start_at is not None:
                wait = self._next_start_at - self._clock.monotonic()
                if wait > 0:
                    await self._clock.sleep(wait)
            self._next_start_at = self._clock.monotonic() + interval
