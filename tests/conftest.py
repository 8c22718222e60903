"""
Shared pytest fixtures for auth and gateway client tests.

Credentials are throwaway test values (``k1``/``s1``).  Tests that need
percent-encoded secrets build their own.

No test touches the network: transport-level tests patch
``requests.request`` and batch tests drive in-memory async actions.
"""

from __future__ import annotations

import asyncio
import random
from unittest.mock import MagicMock

import pytest

from src.gateway_client.config import CURRENCY_TABLE
from src.gateway_client.credentials import Credential, CurrencyConfig
from src.gateway_client.outcomes import Task
from src.gateway_client.retry import RetryPolicy

API_KEY = "k1"
SECRET_KEY = "s1"
BASE_URL = "https://gateway.test"
CALLBACK_URL = "https://merchant.test/callback"


# ---------------------------------------------------------------------------
# Credentials and configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def credential():
    return Credential(api_key=API_KEY, secret_key=SECRET_KEY)


def make_currency_config(currency: str = "INR", merchant_code: str = "M001") -> CurrencyConfig:
    return CurrencyConfig(
        currency=currency,
        merchant_code=merchant_code,
        credential=Credential(api_key=API_KEY, secret_key=SECRET_KEY),
        base_url=BASE_URL,
        callback_url=CALLBACK_URL,
        deposit_method=f"DP_{currency}",
        payout_method=f"WD_{currency}",
        rules=dict(CURRENCY_TABLE[currency]),
    )


@pytest.fixture
def inr_config():
    return make_currency_config("INR")


@pytest.fixture
def gateway_environ():
    """Environment with INR and VND fully configured and BDT half-configured."""
    return {
        "BASE_URL": BASE_URL,
        "CALLBACK_URL": CALLBACK_URL,
        "MERCHANT_CODE_INR": "M-INR",
        "MERCHANT_API_KEY_INR": "api-inr",
        "SECRET_KEY_INR": "secret-inr",
        "DEPOSIT_METHOD_INR": "UPI",
        "PAYOUT_METHOD_INR": "IMPS",
        "MERCHANT_CODE_VND": "M-VND",
        "MERCHANT_API_KEY_VND": "api-vnd",
        "SECRET_KEY_VND": "secret-vnd",
        "MERCHANT_CODE_BDT": "M-BDT",
    }


@pytest.fixture
def rng():
    return random.Random(1234)


# ---------------------------------------------------------------------------
# HTTP response doubles
# ---------------------------------------------------------------------------

def make_http_response(status: int = 200, text: str = '{"status": "success"}'):
    """MagicMock shaped like a ``requests.Response``."""
    response = MagicMock()
    response.status_code = status
    response.text = text
    response.headers = {"Content-Type": "application/json"}
    return response


# ---------------------------------------------------------------------------
# Batch helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fast_policy():
    """Three attempts, zero backoff, no per-attempt timeout."""
    return RetryPolicy(max_attempts=3, base_delay=0.0, attempt_timeout=None)


class RecordingSleep:
    """Async ``sleep`` replacement that records delays and returns immediately."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


def make_task(task_id: str, result=None, error: BaseException | None = None, delay: float = 0.0):
    """Task whose action optionally sleeps, then returns ``result`` or raises ``error``."""
    async def action():
        if delay:
            await asyncio.sleep(delay)
        if error is not None:
            raise error
        return result if result is not None else {"task_id": task_id}
    return Task(task_id=task_id, action=action)


def make_flaky_task(task_id: str, failures: list[BaseException], result=None):
    """Task that raises each error in ``failures`` in turn, then succeeds."""
    remaining = list(failures)
    calls = {"n": 0}

    async def action():
        calls["n"] += 1
        if remaining:
            raise remaining.pop(0)
        return result if result is not None else {"task_id": task_id}

    task = Task(task_id=task_id, action=action)
    return task, calls
