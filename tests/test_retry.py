"""
Unit tests for src/gateway_client/retry.py and src/gateway_client/errors.py.

Async code is driven with ``asyncio.run`` inside plain tests.  Backoff
waits go through a recording sleep so no test actually waits.
"""

from __future__ import annotations

import asyncio
import json

import pytest

from src.auth.errors import DecryptionError, SerializationError, SignatureMismatchError
from src.gateway_client.errors import (
    ErrorCategory,
    GatewayRejectedError,
    HttpError,
    NetworkError,
    ParseError,
    ValidationError,
)
from src.gateway_client.outcomes import Failure, Success, Task, normalize_error_key
from src.gateway_client.retry import (
    RetryPolicy,
    call_with_retry,
    clear_failed_calls_log,
    exponential_backoff,
    load_failed_calls,
    log_failed_outcome,
    should_retry,
)

from .conftest import make_flaky_task, make_task


def _run(task, policy, sleep):
    return asyncio.run(call_with_retry(task, policy, sleep=sleep, verbose=False))


# ---------------------------------------------------------------------------
# Categorization
# ---------------------------------------------------------------------------

class TestErrorCategory:

    @pytest.mark.parametrize("error, category", [
        (NetworkError("down"), "network"),
        (HttpError(503), "http"),
        (ParseError("bad json"), "parse"),
        (GatewayRejectedError("rejected"), "gateway_rejected"),
        (ValidationError("bad input"), "validation"),
        (SerializationError("nan"), "serialization"),
        (DecryptionError("padding"), "decryption"),
        (SignatureMismatchError("mismatch"), "signature_mismatch"),
        (TimeoutError("slow"), "timeout"),
        (asyncio.CancelledError(), "cancelled"),
        (RuntimeError("boom"), "other"),
    ])
    def test_categorize(self, error, category):
        assert ErrorCategory.categorize(error) == category

    @pytest.mark.parametrize("category", ["network", "timeout", "http", "parse", "other"])
    def test_retriable(self, category):
        assert ErrorCategory.is_retriable(category)

    @pytest.mark.parametrize("category", [
        "validation", "serialization", "key_derivation", "decryption",
        "malformed_payload", "signature_mismatch", "gateway_rejected", "cancelled",
    ])
    def test_permanent(self, category):
        assert not ErrorCategory.is_retriable(category)

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------

class TestBackoff:

    def test_exponential_schedule(self):
        assert [exponential_backoff(n, 1.0) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_scaled_base(self):
        assert exponential_backoff(3, 0.5) == 2.0

    def test_should_retry_stops_at_limit(self):
        assert should_retry("network", 2, 3)
        assert not should_retry("network", 3, 3)

    def test_should_retry_never_for_permanent(self):
        assert not should_retry("validation", 1, 3)

    def test_policy_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


# ---------------------------------------------------------------------------
# call_with_retry
# ---------------------------------------------------------------------------

class TestCallWithRetry:

    def test_first_attempt_success(self, fast_policy, recording_sleep):
        outcome = _run(make_task("t1", result={"ok": 1}), fast_policy, recording_sleep)
        assert isinstance(outcome, Success)
        assert outcome.data == {"ok": 1}
        assert outcome.attempts == 1
        assert recording_sleep.delays == []

    def test_transient_then_success(self, fast_policy, recording_sleep):
        task, calls = make_flaky_task("t1", [NetworkError("reset"), HttpError(502)])
        outcome = _run(task, fast_policy, recording_sleep)
        assert outcome.ok
        assert outcome.attempts == 3
        assert calls["n"] == 3

    def test_attempts_bounded_and_delays_non_decreasing(self, recording_sleep):
        policy = RetryPolicy(max_attempts=3, base_delay=1.0, attempt_timeout=None)
        task, calls = make_flaky_task("t1", [NetworkError("down")] * 10)
        outcome = _run(task, policy, recording_sleep)

        assert isinstance(outcome, Failure)
        assert outcome.attempts == 3
        assert calls["n"] == 3
        # No sleep after the final attempt
        assert recording_sleep.delays == [1.0, 2.0]
        assert recording_sleep.delays == sorted(recording_sleep.delays)

    def test_permanent_error_not_retried(self, fast_policy, recording_sleep):
        task, calls = make_flaky_task("t1", [GatewayRejectedError("insufficient balance")])
        outcome = _run(task, fast_policy, recording_sleep)
        assert not outcome.ok
        assert outcome.attempts == 1
        assert outcome.category == "gateway_rejected"
        assert outcome.error_type == "GatewayRejectedError"
        assert calls["n"] == 1
        assert recording_sleep.delays == []

    def test_unknown_exception_is_retried(self, fast_policy, recording_sleep):
        task, calls = make_flaky_task("t1", [RuntimeError("glitch")])
        outcome = _run(task, fast_policy, recording_sleep)
        assert outcome.ok
        assert calls["n"] == 2

    def test_attempt_timeout_counts_as_failed_attempt(self, recording_sleep):
        policy = RetryPolicy(max_attempts=2, base_delay=0.0, attempt_timeout=0.01)
        task = make_task("slow", delay=1.0)
        outcome = _run(task, policy, recording_sleep)
        assert not outcome.ok
        assert outcome.category == "timeout"
        assert outcome.attempts == 2
        assert "timed out" in outcome.error

    def test_failure_records_last_error(self, fast_policy, recording_sleep):
        task, _ = make_flaky_task("t1", [NetworkError("first"), NetworkError("second"), HttpError(500)])
        outcome = _run(task, fast_policy, recording_sleep)
        assert outcome.error_type == "HttpError"
        assert outcome.category == "http"

    def test_context_carried_to_outcome(self, fast_policy, recording_sleep):
        async def action():
            return 1
        task = Task(task_id="t1", action=action, context={"currency": "INR"})
        outcome = _run(task, fast_policy, recording_sleep)
        assert outcome.context == {"currency": "INR"}

    def test_verbose_prints_attempt_line(self, fast_policy, recording_sleep, capsys):
        task = make_task("t9", error=ValidationError("bad amount"))
        asyncio.run(call_with_retry(task, fast_policy, sleep=recording_sleep, verbose=True))
        out = capsys.readouterr().out
        assert "[t9] Attempt 1/3 failed [validation]: bad amount" in out


class TestFollowUp:
    """The follow-up runs once after success, outside retries and the attempt timeout."""

    def test_follow_up_result_becomes_data(self, fast_policy, recording_sleep):
        async def follow_up(data):
            return {**data, "extra": True}
        task = Task(task_id="t1", action=make_task("t1", result={"n": 1}).action, follow_up=follow_up)
        outcome = _run(task, fast_policy, recording_sleep)
        assert outcome.data == {"n": 1, "extra": True}
        assert outcome.follow_up_error is None

    def test_slow_follow_up_does_not_repeat_action(self, recording_sleep):
        calls = {"action": 0}

        async def action():
            calls["action"] += 1
            return {"n": 1}

        async def follow_up(data):
            await asyncio.sleep(0.1)
            return data

        policy = RetryPolicy(max_attempts=3, base_delay=0.0, attempt_timeout=0.05)
        outcome = _run(Task(task_id="t1", action=action, follow_up=follow_up), policy, recording_sleep)
        assert outcome.ok
        assert outcome.attempts == 1
        assert calls["action"] == 1

    def test_follow_up_error_recorded_not_retried(self, fast_policy, recording_sleep):
        calls = {"action": 0, "follow_up": 0}

        async def action():
            calls["action"] += 1
            return {"n": 1}

        async def follow_up(data):
            calls["follow_up"] += 1
            raise NetworkError("callback endpoint down")

        outcome = _run(Task(task_id="t1", action=action, follow_up=follow_up),
                       fast_policy, recording_sleep)
        assert outcome.ok
        assert outcome.data == {"n": 1}
        assert outcome.follow_up_error == "NetworkError: callback endpoint down"
        assert calls == {"action": 1, "follow_up": 1}

    def test_follow_up_skipped_after_failure(self, fast_policy, recording_sleep):
        ran = []

        async def follow_up(data):
            ran.append(data)
            return data

        failing = make_task("t1", error=GatewayRejectedError("declined"))
        task = Task(task_id="t1", action=failing.action, follow_up=follow_up)
        outcome = _run(task, fast_policy, recording_sleep)
        assert not outcome.ok
        assert ran == []



# ---------------------------------------------------------------------------
# Error keys
# ---------------------------------------------------------------------------

class TestNormalizeErrorKey:

    def test_digit_runs_collapsed(self):
        first = normalize_error_key("HttpError", "HTTP 500 - order TEST-DP-1700000001 failed")
        second = normalize_error_key("HttpError", "HTTP 500 - order TEST-DP-1700000002 failed")
        assert first == second == "HttpError: HTTP 500 - order TEST-DP-# failed"

    def test_short_numbers_kept(self):
        assert normalize_error_key("HttpError", "HTTP 502") == "HttpError: HTTP 502"

    def test_whitespace_collapsed(self):
        assert normalize_error_key("E", "a \n\t b") == "E: a b"

    def test_truncated(self):
        key = normalize_error_key("NetworkError", "x" * 500)
        assert len(key) == 100
        assert key.endswith("...")

    def test_empty_message(self):
        assert normalize_error_key("NetworkError", "") == "NetworkError"


# ---------------------------------------------------------------------------
# Failed-call log
# ---------------------------------------------------------------------------

class TestFailedCallsLog:

    def _failure(self, task_id="TEST-DP-1"):
        return Failure(task_id=task_id, error="HTTP 500", category="http", attempts=3,
                       error_type="HttpError", context={"currency": "INR"})

    def test_log_and_load(self, tmp_path):
        log_path = tmp_path / "logs" / "failed.jsonl"
        log_failed_outcome(self._failure("A"), log_path)
        log_failed_outcome(self._failure("B"), log_path)

        records = load_failed_calls(log_path)
        assert [r["task_id"] for r in records] == ["A", "B"]
        assert records[0]["category"] == "http"
        assert records[0]["context"] == {"currency": "INR"}
        assert "timestamp" in records[0]

    def test_success_not_logged(self, tmp_path):
        log_path = tmp_path / "failed.jsonl"
        log_failed_outcome(Success(task_id="A", data={}, attempts=1), log_path)
        assert not log_path.exists()

    def test_lines_are_json(self, tmp_path):
        log_path = tmp_path / "failed.jsonl"
        log_failed_outcome(self._failure(), log_path)
        line = log_path.read_text(encoding="utf-8").strip()
        assert json.loads(line)["attempts"] == 3

    def test_load_missing_file(self, tmp_path):
        assert load_failed_calls(tmp_path / "missing.jsonl") == []

    def test_clear(self, tmp_path):
        log_path = tmp_path / "failed.jsonl"
        log_failed_outcome(self._failure(), log_path)
        clear_failed_calls_log(log_path)
        assert not log_path.exists()
