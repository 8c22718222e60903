"""
Bounded-concurrency batch execution, aggregation, and summary reporting.

Execution model:
- Tasks are split into consecutive chunks of ``concurrency``.  Chunks run
  one after another; the tasks inside a chunk run concurrently, each through
  :func:`retry.call_with_retry`.
- The inter-chunk delay is applied between chunks, not after the last one.
- Outcomes are folded into a :class:`BatchAggregator` by the control loop
  only, after each chunk is awaited.  Tasks never touch shared counters.
- A task failure never aborts its siblings.  Only pre-flight
  ``ValidationError`` escapes, before any task is dispatched.
- Cancellation: once ``cancel_event`` is set no further chunk starts; the
  in-flight chunk gets ``drain_timeout`` seconds, then its stragglers are
  cancelled and recorded as ``cancelled`` failures.  If the batch itself is
  cancelled from outside, its unfinished tasks are cancelled before the
  ``CancelledError`` propagates.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .config import (
    DRAIN_TIMEOUT_SECONDS,
    INTER_BATCH_DELAY_SECONDS,
    MAX_CONCURRENT_REQUESTS,
    TOP_ERROR_CLASSES,
)
from .errors import ErrorCategory, ValidationError
from .outcomes import Failure, Outcome, Task
from .retry import RetryPolicy, Sleep, call_with_retry, log_failed_outcome


@dataclass(frozen=True)
class BatchProgress:
    """Snapshot emitted after each chunk."""

    completed: int
    total: int
    succeeded: int
    failed: int
    elapsed_seconds: float
    eta_seconds: float | None


@dataclass(frozen=True)
class BatchResult:
    """
    Final, immutable statistics of one batch run.

    ``outcomes`` holds one entry per dispatched task in submission order.
    When the run was cancelled, tasks that were never dispatched are absent,
    so ``total`` can exceed ``len(outcomes)``.
    """

    total: int
    succeeded: int
    failed: int
    outcomes: tuple[Outcome, ...]
    error_histogram: dict[str, int]
    started_at: datetime
    duration_seconds: float
    cancelled: bool = False

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed

    @property
    def average_seconds_per_task(self) -> float:
        return self.duration_seconds / self.completed if self.completed else 0.0

    def top_errors(self, n: int = TOP_ERROR_CLASSES) -> list[tuple[str, int]]:
        """Most frequent error keys, count descending then key ascending."""
        ranked = sorted(self.error_histogram.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:n]

    def failures(self) -> list[Failure]:
        return [o for o in self.outcomes if not o.ok]


@dataclass
class BatchAggregator:
    """
    Mutable accumulator owned by the batch control loop.

    Only :func:`run_batch` calls :meth:`record`; it is not shared with tasks.
    """

    total: int
    started_at: datetime = field(default_factory=datetime.now)
    succeeded: int = 0
    failed: int = 0
    outcomes: list[Outcome] = field(default_factory=list)
    error_histogram: Counter = field(default_factory=Counter)
    _start: float = field(default_factory=time.monotonic, repr=False)

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed

    def elapsed(self) -> float:
        return time.monotonic() - self._start

    def record(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)
        if outcome.ok:
            self.succeeded += 1
        else:
            self.failed += 1
            self.error_histogram[outcome.error_key] += 1

    def progress(self) -> BatchProgress:
        elapsed = self.elapsed()
        completed = self.completed
        eta = None
        if completed:
            eta = elapsed / completed * (self.total - completed)
        return BatchProgress(
            completed=completed,
            total=self.total,
            succeeded=self.succeeded,
            failed=self.failed,
            elapsed_seconds=round(elapsed, 3),
            eta_seconds=round(eta, 3) if eta is not None else None,
        )

    def finish(self, cancelled: bool = False) -> BatchResult:
        return BatchResult(
            total=self.total,
            succeeded=self.succeeded,
            failed=self.failed,
            outcomes=tuple(self.outcomes),
            error_histogram=dict(self.error_histogram),
            started_at=self.started_at,
            duration_seconds=round(self.elapsed(), 3),
            cancelled=cancelled,
        )


# ---------------------------------------------------------------------------
# Pre-flight checks
# ---------------------------------------------------------------------------

def validate_batch(
    tasks: Sequence[Task],
    concurrency: int,
    inter_batch_delay: float,
    drain_timeout: float,
) -> None:
    """
    Raises:
        ValidationError: Bad concurrency or delay, or duplicate task ids.
    """
    if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
        raise ValidationError(f"Concurrency must be a positive integer; got {concurrency!r}")
    if inter_batch_delay < 0:
        raise ValidationError("Inter-batch delay cannot be negative")
    if drain_timeout < 0:
        raise ValidationError("Drain timeout cannot be negative")

    seen: set[str] = set()
    duplicates: list[str] = []
    for task in tasks:
        if task.task_id in seen:
            duplicates.append(task.task_id)
        seen.add(task.task_id)
    if duplicates:
        raise ValidationError(f"Duplicate task ids: {', '.join(sorted(set(duplicates)))}")


def chunk_tasks(tasks: Sequence[Task], size: int) -> list[list[Task]]:
    return [list(tasks[i:i + size]) for i in range(0, len(tasks), size)]


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def _cancelled_failure(task: Task) -> Failure:
    return Failure(
        task_id=task.task_id,
        error="Task cancelled before completion",
        category=ErrorCategory.CANCELLED,
        attempts=1,
        error_type="CancelledError",
        context=task.context,
    )


async def _run_chunk(
    chunk: list[Task],
    policy: RetryPolicy,
    sleep: Sleep,
    verbose: bool,
    cancel_event: asyncio.Event | None,
    drain_timeout: float,
) -> tuple[list[Outcome], bool]:
    """Run one chunk concurrently; return outcomes in submission order and a cancelled flag."""
    futures = [
        asyncio.ensure_future(call_with_retry(task, policy, sleep=sleep, verbose=verbose))
        for task in chunk
    ]
    watcher = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
    cancelled = False

    try:
        if watcher is None:
            await asyncio.wait(futures)
        else:
            pending = set(futures)
            while pending and not watcher.done():
                _, pending = await asyncio.wait(
                    pending | {watcher}, return_when=asyncio.FIRST_COMPLETED
                )
                pending.discard(watcher)

            if pending:
                cancelled = True
                if verbose:
                    print(f"  Cancellation requested; draining {len(pending)} in-flight task(s) "
                          f"for up to {drain_timeout}s")
                await asyncio.wait(pending, timeout=drain_timeout)
    finally:
        # Stragglers after a drain, or every unfinished task when the batch
        # itself is cancelled from outside
        if watcher is not None:
            watcher.cancel()
        leftovers = [future for future in futures if not future.done()]
        for future in leftovers:
            future.cancel()
        if leftovers:
            await asyncio.gather(*leftovers, return_exceptions=True)

    outcomes: list[Outcome] = []
    for task, future in zip(chunk, futures):
        if future.cancelled():
            outcomes.append(_cancelled_failure(task))
        else:
            outcomes.append(future.result())
    return outcomes, cancelled


def _print_progress(progress: BatchProgress, chunk_index: int, n_chunks: int) -> None:
    eta = f"{progress.eta_seconds:.1f}s" if progress.eta_seconds is not None else "n/a"
    print(
        f"[{progress.completed}/{progress.total}] chunk {chunk_index}/{n_chunks}  "
        f"ok={progress.succeeded} failed={progress.failed}  "
        f"elapsed={progress.elapsed_seconds:.1f}s eta={eta}"
    )


async def run_batch(
    tasks: Sequence[Task],
    concurrency: int = MAX_CONCURRENT_REQUESTS,
    inter_batch_delay: float = INTER_BATCH_DELAY_SECONDS,
    *,
    retry_policy: RetryPolicy | None = None,
    progress_callback: Callable[[BatchProgress], None] | None = None,
    cancel_event: asyncio.Event | None = None,
    drain_timeout: float = DRAIN_TIMEOUT_SECONDS,
    top_n: int = TOP_ERROR_CLASSES,
    verbose: bool = True,
    sleep: Sleep = asyncio.sleep,
    failed_log: Path | None = None,
) -> BatchResult:
    """
    Execute ``tasks`` with at most ``concurrency`` in flight.

    Args:
        tasks: Tasks to run; ids must be unique.
        concurrency: Chunk size (maximum simultaneous tasks).
        inter_batch_delay: Seconds between chunks.
        retry_policy: Per-task retry policy; defaults to :class:`RetryPolicy`.
        progress_callback: Called with a :class:`BatchProgress` after each chunk.
        cancel_event: Set it to stop dispatching and drain the current chunk.
        drain_timeout: Seconds in-flight tasks may finish after cancellation.
        top_n: Error classes shown in the printed summary.
        verbose: Print progress, attempt failures, and the summary.
        sleep: Coroutine used for backoff and inter-chunk waits.
        failed_log: When given, each failure is appended to this JSONL file.

    Returns:
        :class:`BatchResult`; partial with ``cancelled=True`` if cancelled.

    Raises:
        ValidationError: Pre-flight check failed; no task was started.
    """
    validate_batch(tasks, concurrency, inter_batch_delay, drain_timeout)
    policy = retry_policy or RetryPolicy()
    chunks = chunk_tasks(tasks, concurrency)
    aggregator = BatchAggregator(total=len(tasks))
    cancelled = False

    if verbose:
        print(
            f"\nStarting batch: {len(tasks):,} tasks in {len(chunks)} chunk(s) "
            f"of up to {concurrency}\n"
        )

    for index, chunk in enumerate(chunks, start=1):
        if cancel_event is not None and cancel_event.is_set():
            cancelled = True
            break

        outcomes, chunk_cancelled = await _run_chunk(
            chunk, policy, sleep, verbose, cancel_event, drain_timeout
        )
        for outcome in outcomes:
            aggregator.record(outcome)
            if failed_log is not None:
                log_failed_outcome(outcome, failed_log)

        progress = aggregator.progress()
        if verbose:
            _print_progress(progress, index, len(chunks))
        if progress_callback is not None:
            progress_callback(progress)

        if chunk_cancelled:
            cancelled = True
            break
        if index < len(chunks) and inter_batch_delay > 0:
            await sleep(inter_batch_delay)

    result = aggregator.finish(cancelled=cancelled)
    if verbose:
        print_batch_summary(result, top_n=top_n)
    return result


def process_batch(tasks: Sequence[Task], *args, **kwargs) -> BatchResult:
    """Synchronous entry point: ``asyncio.run(run_batch(...))``."""
    return asyncio.run(run_batch(tasks, *args, **kwargs))


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

def print_batch_summary(result: BatchResult, top_n: int = TOP_ERROR_CLASSES) -> None:
    """Print totals, timing, and the most frequent error classes."""
    sep = "=" * 60
    print(f"\n{sep}")
    print("BATCH CANCELLED" if result.cancelled else "BATCH COMPLETE")
    print(f"  Total:     {result.total:,}")
    print(f"  Completed: {result.completed:,}")
    print(f"  Succeeded: {result.succeeded:,}")
    print(f"  Failed:    {result.failed:,}")
    print(f"  Duration:  {result.duration_seconds:.2f}s "
          f"(avg {result.average_seconds_per_task:.3f}s per task)")

    top = result.top_errors(top_n)
    if top:
        print(f"\n  Top {len(top)} error(s):")
        for key, count in top:
            print(f"    {count:>5}  {key}")
    print(f"{sep}\n")
