"""
Gateway configuration, execution constants, and project path constants.

Currency and execution constants are owned by the root ``config`` package;
this module re-exports them next to the path constants so the rest of
``src/gateway_client`` has a single import point.
"""

from pathlib import Path

from config.execution_params import (
    CALLBACK_SUCCESS_RATE,
    DEPOSIT_CODE_PREFIX,
    DRAIN_TIMEOUT_SECONDS,
    ERROR_KEY_MAX_CHARS,
    INTER_BATCH_DELAY_SECONDS,
    MAX_BATCH_SIZE,
    MAX_CONCURRENT_REQUESTS,
    MIN_AMOUNT,
    PAYOUT_CODE_PREFIX,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_ATTEMPTS,
    RETRY_BASE_DELAY_SECONDS,
    TOP_ERROR_CLASSES,
)
from config.gateway_config import (
    BASE_URL_ENV,
    CALLBACK_CURRENCIES,
    CALLBACK_URL_ENV,
    CURRENCY_TABLE,
    DEPOSIT_CURRENCIES,
    ENDPOINTS,
    ENV_VAR_TEMPLATES,
    MERCHANT_CODE_HEADER,
    PAYOUT_CURRENCIES,
    PIX_ACCOUNT_TYPES,
    PROTOCOLS,
    SIGNATURE_HEADER,
    SUPPORTED_CURRENCIES,
)

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Resolve from this file: src/gateway_client/config.py → src/gateway_client → src → root
PROJECT_ROOT = Path(__file__).resolve().parents[2]

LOGS_DIR = PROJECT_ROOT / "logs"
RESULTS_DIR = PROJECT_ROOT / "results"

FAILED_CALLS_LOG = LOGS_DIR / "failed_calls.jsonl"
OUTCOMES_CSV = RESULTS_DIR / "batch_outcomes.csv"

__all__ = [
    "PROJECT_ROOT",
    "LOGS_DIR",
    "RESULTS_DIR",
    "FAILED_CALLS_LOG",
    "OUTCOMES_CSV",
    "BASE_URL_ENV",
    "CALLBACK_URL_ENV",
    "CALLBACK_CURRENCIES",
    "CALLBACK_SUCCESS_RATE",
    "MERCHANT_CODE_HEADER",
    "CURRENCY_TABLE",
    "DEPOSIT_CURRENCIES",
    "PAYOUT_CURRENCIES",
    "SUPPORTED_CURRENCIES",
    "ENDPOINTS",
    "ENV_VAR_TEMPLATES",
    "PIX_ACCOUNT_TYPES",
    "PROTOCOLS",
    "SIGNATURE_HEADER",
    "DEPOSIT_CODE_PREFIX",
    "PAYOUT_CODE_PREFIX",
    "DRAIN_TIMEOUT_SECONDS",
    "ERROR_KEY_MAX_CHARS",
    "INTER_BATCH_DELAY_SECONDS",
    "MAX_BATCH_SIZE",
    "MAX_CONCURRENT_REQUESTS",
    "MIN_AMOUNT",
    "REQUEST_TIMEOUT_SECONDS",
    "RETRY_ATTEMPTS",
    "RETRY_BASE_DELAY_SECONDS",
    "TOP_ERROR_CLASSES",
]
