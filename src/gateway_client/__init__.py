"""
src/gateway_client: batch execution layer for the merchant gateway test harness.

Module layout
-------------
config.py      : re-exported gateway/execution constants, path constants
errors.py      : GatewayError hierarchy, ErrorCategory (retriable vs permanent)
credentials.py : Credential, CurrencyConfig, environment loading
builder.py     : input validation, synthetic deposit/payout payloads
transport.py   : single HTTP request via requests (sync + thread-offloaded async)
parser.py      : response classification and encrypted_data decryption
executor.py    : authenticated request construction, single-request execution
outcomes.py    : Task, Success, Failure, error-key normalization
retry.py       : RetryPolicy, exponential backoff, failed-call log
batch.py       : chunked concurrent execution, aggregation, summary
workflows.py   : deposit/payout/status/callback tasks, KRW customer creation
report.py      : outcome DataFrames and CSV export
runner.py      : command-line entry point

Public interface
----------------
Run a batch:
    tasks = build_deposit_tasks(config, count=50, amount=100)
    result = process_batch(tasks)            # or: await run_batch(tasks)

Inspect results:
    result.top_errors()
    summarize_outcomes(result)
    export_outcomes(result)

Manage the failed-call log:
    load_failed_calls()
    clear_failed_calls_log()
"""

from .batch import BatchProgress, BatchResult, print_batch_summary, process_batch, run_batch
from .credentials import Credential, CurrencyConfig, GatewayConfig, load_gateway_config
from .errors import (
    ErrorCategory,
    GatewayError,
    GatewayRejectedError,
    HttpError,
    NetworkError,
    ParseError,
    ValidationError,
)
from .executor import AuthenticatedRequest, build_authenticated_request, execute_gateway_request
from .outcomes import Failure, Success, Task
from .report import export_outcomes, outcomes_to_frame, summarize_outcomes
from .retry import RetryPolicy, clear_failed_calls_log, load_failed_calls
from .workflows import (
    build_callback_tasks,
    build_deposit_tasks,
    build_payout_tasks,
    build_status_tasks,
    create_customer,
)

__all__ = [
    # Batch execution
    "run_batch",
    "process_batch",
    "print_batch_summary",
    "BatchProgress",
    "BatchResult",
    "RetryPolicy",
    "Task",
    "Success",
    "Failure",
    # Configuration
    "Credential",
    "CurrencyConfig",
    "GatewayConfig",
    "load_gateway_config",
    # Requests
    "AuthenticatedRequest",
    "build_authenticated_request",
    "execute_gateway_request",
    "build_deposit_tasks",
    "build_payout_tasks",
    "build_status_tasks",
    "build_callback_tasks",
    "create_customer",
    # Reporting
    "outcomes_to_frame",
    "summarize_outcomes",
    "export_outcomes",
    "load_failed_calls",
    "clear_failed_calls_log",
    # Errors
    "ErrorCategory",
    "GatewayError",
    "NetworkError",
    "HttpError",
    "ParseError",
    "GatewayRejectedError",
    "ValidationError",
]
