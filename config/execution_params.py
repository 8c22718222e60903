"""
Batch execution constants: concurrency, retry schedule, timeouts, limits.

This is the AUTHORITATIVE source for execution constants.
src/gateway_client/config.py imports from here; do not maintain parallel
copies.

Design rationale:
- 10 concurrent requests per chunk keeps the gateway under its rate limits
  while a 1,000-request batch still finishes in minutes.
- Backoff is exponential (1 s, 2 s, 4 s, ...) so a struggling gateway
  sees fewer retries per second as failures accumulate.
- A chunk of requests never starts before the previous chunk has fully
  resolved, so in-flight requests never exceed MAX_CONCURRENT_REQUESTS.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

# Tasks dispatched together in one chunk
MAX_CONCURRENT_REQUESTS: int = 10

# Pause between chunks (not applied after the last chunk)
INTER_BATCH_DELAY_SECONDS: float = 0.5

# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------

# Total attempts per task (initial call + retries)
RETRY_ATTEMPTS: int = 3

# Backoff before retry n is RETRY_BASE_DELAY_SECONDS * 2 ** (n - 1)
RETRY_BASE_DELAY_SECONDS: float = 1.0

# Per-attempt network timeout; expiry counts as a failed, retriable attempt
REQUEST_TIMEOUT_SECONDS: float = 30.0

# Grace period for in-flight tasks after cancellation is requested
DRAIN_TIMEOUT_SECONDS: float = 10.0

# ---------------------------------------------------------------------------
# Batch limits and reporting
# ---------------------------------------------------------------------------

MAX_BATCH_SIZE: int = 1000
MIN_AMOUNT: int = 1

# Most frequent error classes shown in the batch summary
TOP_ERROR_CLASSES: int = 5

# Error histogram keys are truncated to this many characters
ERROR_KEY_MAX_CHARS: int = 100

# Share of simulated callbacks that report success (status 0)
CALLBACK_SUCCESS_RATE: float = 0.8

# Transaction code prefixes
DEPOSIT_CODE_PREFIX: str = "TEST-DP"
PAYOUT_CODE_PREFIX: str = "TEST-WD"
