"""
Retry policy, exponential backoff, and the failed-call log.

Backoff schedule: ``base_delay * 2 ** (attempt - 1)`` after the attempt
that just failed, so with the default 1 s base the waits are 1 s, 2 s, 4 s.
There is no wait after the final attempt.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import (
    FAILED_CALLS_LOG,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_ATTEMPTS,
    RETRY_BASE_DELAY_SECONDS,
)
from .errors import ErrorCategory
from .outcomes import Failure, Outcome, Success, Task

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt limits and timing for one task.

    Attributes:
        max_attempts: Total attempts (initial call + retries).
        base_delay: Backoff base in seconds.
        attempt_timeout: Per-attempt timeout in seconds; ``None`` disables it.
    """

    max_attempts: int = RETRY_ATTEMPTS
    base_delay: float = RETRY_BASE_DELAY_SECONDS
    attempt_timeout: float | None = REQUEST_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay cannot be negative")


# ---------------------------------------------------------------------------
# Backoff helpers
# ---------------------------------------------------------------------------

def exponential_backoff(attempt: int, base_delay: float = RETRY_BASE_DELAY_SECONDS) -> float:
    """
    Return the wait before the next attempt.

    Args:
        attempt: 1-based number of the attempt that just failed.
        base_delay: Delay after the first failure.

    Returns:
        ``base_delay * 2 ** (attempt - 1)`` seconds.
    """
    return base_delay * 2 ** (attempt - 1)


def should_retry(category: str, attempt: int, max_attempts: int = RETRY_ATTEMPTS) -> bool:
    """
    Decide whether a failed attempt gets another try.

    Args:
        category: Error category from :meth:`ErrorCategory.categorize`.
        attempt: The 1-based attempt number that just failed.
        max_attempts: Total attempts allowed.
    """
    if attempt >= max_attempts:
        return False
    return ErrorCategory.is_retriable(category)


# ---------------------------------------------------------------------------
# Main retry wrapper
# ---------------------------------------------------------------------------

async def _run_follow_up(task: Task, data: Any, verbose: bool) -> tuple[Any, str | None]:
    """Await ``task.follow_up`` once; its errors are reported, never retried."""
    if task.follow_up is None:
        return data, None
    try:
        return await task.follow_up(data), None
    except Exception as exc:
        error = f"{type(exc).__name__}: {exc}"
        if verbose:
            print(f"  [{task.task_id}] Follow-up failed: {error[:120]}")
        return data, error


async def call_with_retry(
    task: Task,
    policy: RetryPolicy = RetryPolicy(),
    sleep: Sleep = asyncio.sleep,
    verbose: bool = True,
) -> Outcome:
    """
    Await ``task.action`` until it succeeds or the policy gives up.

    Every exception from the action is captured into the returned
    :class:`Failure`; only cancellation propagates.  After a success the
    task's ``follow_up`` runs once, untimed and unretried; an exception from
    it lands in :attr:`Success.follow_up_error`.

    Args:
        task: Task to run.
        policy: Attempt limit, backoff base, per-attempt timeout.
        sleep: Coroutine used for backoff waits (injectable for tests).
        verbose: Print one line per failed attempt.

    Returns:
        :class:`Success` with the action's return value, or :class:`Failure`
        describing the last error.
    """
    start = time.monotonic()
    attempt = 0
    last_error: BaseException | None = None
    category = ErrorCategory.OTHER

    while attempt < policy.max_attempts:
        attempt += 1
        try:
            if policy.attempt_timeout is None:
                data = await task.action()
            else:
                data = await asyncio.wait_for(task.action(), timeout=policy.attempt_timeout)
        except asyncio.TimeoutError:
            last_error = TimeoutError(f"Attempt timed out after {policy.attempt_timeout}s")
            category = ErrorCategory.TIMEOUT
        except Exception as exc:
            last_error = exc
            category = ErrorCategory.categorize(exc)
        else:
            data, follow_up_error = await _run_follow_up(task, data, verbose)
            return Success(
                task_id=task.task_id,
                data=data,
                attempts=attempt,
                duration_seconds=round(time.monotonic() - start, 3),
                context=task.context,
                follow_up_error=follow_up_error,
            )

        if verbose:
            print(
                f"  [{task.task_id}] Attempt {attempt}/{policy.max_attempts} failed "
                f"[{category}]: {str(last_error)[:120]}"
            )

        if not should_retry(category, attempt, policy.max_attempts):
            break
        await sleep(exponential_backoff(attempt, policy.base_delay))

    return Failure(
        task_id=task.task_id,
        error=str(last_error) if last_error is not None else "Unknown error",
        category=category,
        attempts=attempt,
        duration_seconds=round(time.monotonic() - start, 3),
        error_type=type(last_error).__name__ if last_error is not None else "Exception",
        context=task.context,
    )


# ---------------------------------------------------------------------------
# Failed-call log
# ---------------------------------------------------------------------------

def log_failed_outcome(outcome: Outcome, log_path: Path = FAILED_CALLS_LOG) -> None:
    """
    Append a failed outcome to the JSONL failure log.

    Records accumulate across sessions so failures can be inspected or
    re-submitted later.  Successful outcomes are ignored.
    """
    if outcome.ok:
        return

    log_path.parent.mkdir(parents=True, exist_ok=True)
    record = asdict(outcome)
    record["timestamp"] = datetime.now().isoformat()
    with log_path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")


def load_failed_calls(log_path: Path = FAILED_CALLS_LOG) -> list[dict]:
    """
    Load failed-call records from the JSONL log.

    Returns:
        List of record dicts (empty if the file does not exist).
    """
    if not log_path.exists():
        print(f"No failed calls log found at {log_path}")
        return []

    records: list[dict] = []
    with log_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if line:
                records.append(json.loads(line))

    print(f"Loaded {len(records)} failed calls from {log_path.name}.")
    return records


def clear_failed_calls_log(log_path: Path = FAILED_CALLS_LOG) -> None:
    """Delete the failed-calls log."""
    if log_path.exists():
        log_path.unlink()
        print(f"Cleared failed calls log: {log_path}")
    else:
        print(f"No failed calls log to clear at {log_path}")
