"""
Command-line entry point for gateway test batches and auth utilities.

Usage (from project root):
    python -m src.gateway_client.runner deposit --currency INR --count 50 --amount 100
    python -m src.gateway_client.runner payout --currency VND --count 20 --min 100 --max 500
    python -m src.gateway_client.runner deposit --currency INR --count 5 --amount 100 --callback
    python -m src.gateway_client.runner deposit --currency KRW --count 1 --amount 10000 --bank-code KB --create-customer
    python -m src.gateway_client.runner status --currency INR WD-REQ-001 WD-REQ-002
    python -m src.gateway_client.runner callback --currency INR DP123456:100 WD123457:250
    python -m src.gateway_client.runner sign --currency INR '{"amount": 100}'
    python -m src.gateway_client.runner encrypt --currency INR 'transaction_code=T1&utr=123'

Configuration is read from the environment once (see config/gateway_config.py).
Ctrl-C stops dispatching new chunks and drains the in-flight one.

Exit codes: 0 all tasks succeeded, 1 some tasks failed (or KRW customer
creation failed), 2 invalid input, 130 cancelled.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import random
import signal
import sys
from pathlib import Path

from src.auth.cipher import decrypt, encrypt
from src.auth.errors import AuthError
from src.auth.signer import sign

from .batch import BatchResult, print_batch_summary, run_batch
from .config import (
    CALLBACK_SUCCESS_RATE,
    DRAIN_TIMEOUT_SECONDS,
    FAILED_CALLS_LOG,
    INTER_BATCH_DELAY_SECONDS,
    MAX_CONCURRENT_REQUESTS,
    PROTOCOLS,
    RETRY_ATTEMPTS,
    RETRY_BASE_DELAY_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
)
from .credentials import Credential, load_gateway_config
from .errors import GatewayError, ValidationError
from .outcomes import Task
from .report import export_outcomes
from .retry import RetryPolicy
from .workflows import (
    build_callback_tasks,
    build_deposit_tasks,
    build_payout_tasks,
    build_status_tasks,
    create_customer,
)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_INVALID = 2
EXIT_CANCELLED = 130


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _add_batch_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--concurrency", type=int, default=MAX_CONCURRENT_REQUESTS,
                        help="Tasks in flight per chunk (default: %(default)s)")
    parser.add_argument("--delay", type=float, default=INTER_BATCH_DELAY_SECONDS,
                        help="Seconds between chunks (default: %(default)s)")
    parser.add_argument("--attempts", type=int, default=RETRY_ATTEMPTS,
                        help="Attempts per task (default: %(default)s)")
    parser.add_argument("--timeout", type=float, default=REQUEST_TIMEOUT_SECONDS,
                        help="Per-attempt timeout in seconds (default: %(default)s)")
    parser.add_argument("--export", type=Path, default=None,
                        help="Write per-task outcomes to this CSV")
    parser.add_argument("--quiet", action="store_true",
                        help="Only print the batch summary")


def _add_transaction_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--currency", required=True)
    parser.add_argument("--count", type=int, default=1)
    parser.add_argument("--amount", default=None, help="Fixed amount for every transaction")
    parser.add_argument("--min", dest="min_amount", type=int, default=None,
                        help="Random amount lower bound (with --max)")
    parser.add_argument("--max", dest="max_amount", type=int, default=None,
                        help="Random amount upper bound (with --min)")
    parser.add_argument("--protocol", choices=PROTOCOLS, default="signed")
    parser.add_argument("--bank-code", default="")
    parser.add_argument("--user-id", type=int, default=0)
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for generated fields (reproducible payloads)")


def _add_key_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--currency", default=None,
                        help="Read keys from this currency's environment variables")
    parser.add_argument("--api-key", default=None)
    parser.add_argument("--secret-key", default=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.gateway_client.runner",
        description="Payment gateway test harness",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    deposit = sub.add_parser("deposit", help="Send a batch of test deposits")
    _add_transaction_options(deposit)
    deposit.add_argument("--no-utr", action="store_true",
                         help="Skip the UTR submission after INR/BDT deposits")
    deposit.add_argument("--callback", action="store_true",
                         help="Simulate the gateway's success callback after each deposit (INR/VND)")
    deposit.add_argument("--create-customer", action="store_true",
                         help="Register a KRW customer first and deposit under its user id")
    _add_batch_options(deposit)

    payout = sub.add_parser("payout", help="Send a batch of test payouts")
    _add_transaction_options(payout)
    payout.add_argument("--account-name", default="")
    _add_batch_options(payout)

    status = sub.add_parser("status", help="Check payout request status")
    status.add_argument("--currency", required=True)
    status.add_argument("request_numbers", nargs="+")
    _add_batch_options(status)

    callback = sub.add_parser("callback", help="Simulate gateway callback notifications")
    callback.add_argument("--currency", required=True)
    callback.add_argument("transactions", nargs="+", metavar="NO:AMOUNT",
                          help="Transaction number and amount, e.g. DP123456:100")
    callback.add_argument("--success-rate", type=float, default=CALLBACK_SUCCESS_RATE,
                          help="Share of callbacks reporting success (default: %(default)s)")
    callback.add_argument("--seed", type=int, default=None)
    _add_batch_options(callback)

    sign_cmd = sub.add_parser("sign", help="Sign a JSON payload")
    _add_key_options(sign_cmd)
    sign_cmd.add_argument("payload", help="JSON object, or a raw string with --raw")
    sign_cmd.add_argument("--raw", action="store_true", help="Sign the argument as-is")

    encrypt_cmd = sub.add_parser("encrypt", help="Encrypt (or decrypt) a payload string")
    _add_key_options(encrypt_cmd)
    encrypt_cmd.add_argument("text")
    encrypt_cmd.add_argument("--decrypt", action="store_true")

    return parser


# ---------------------------------------------------------------------------
# Batch commands
# ---------------------------------------------------------------------------

def _amount_options(args: argparse.Namespace) -> dict:
    if args.amount is not None:
        return {"amount": args.amount}
    if args.min_amount is not None and args.max_amount is not None:
        return {"amount_range": (args.min_amount, args.max_amount)}
    raise ValidationError("Provide --amount, or both --min and --max")


def _parse_transaction(text: str) -> tuple[str, str]:
    transaction_no, sep, amount = text.rpartition(":")
    if not sep or not transaction_no.strip() or not amount.strip():
        raise ValidationError(f"Expected NO:AMOUNT, got '{text}'")
    return transaction_no.strip(), amount.strip()


def build_tasks(args: argparse.Namespace, environ=None) -> list[Task]:
    """Load configuration once and turn parsed arguments into tasks."""
    gateway = load_gateway_config(environ)
    config = gateway.for_currency(args.currency)

    if args.command == "status":
        return build_status_tasks(config, args.request_numbers, timeout=args.timeout)

    rng = random.Random(args.seed)
    if args.command == "callback":
        transactions = [_parse_transaction(text) for text in args.transactions]
        return build_callback_tasks(config, transactions, success_rate=args.success_rate,
                                    rng=rng, timeout=args.timeout)

    user_id = args.user_id
    if args.command == "deposit" and args.create_customer:
        user_id = asyncio.run(create_customer(config, rng=rng, timeout=args.timeout))
        print(f"Created {config.currency} customer: user_id={user_id}")

    common = {
        "count": args.count,
        "protocol": args.protocol,
        "bank_code": args.bank_code,
        "user_id": user_id,
        "rng": rng,
        "timeout": args.timeout,
        **_amount_options(args),
    }
    if args.command == "deposit":
        return build_deposit_tasks(config, submit_utr=not args.no_utr,
                                   send_callback=args.callback, **common)
    return build_payout_tasks(config, account_name=args.account_name, **common)



async def _run_with_signals(tasks: list[Task], args: argparse.Namespace) -> BatchResult:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Signal handlers are unavailable on some platforms (Windows)
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, cancel_event.set)

    return await run_batch(
        tasks,
        concurrency=args.concurrency,
        inter_batch_delay=args.delay,
        retry_policy=RetryPolicy(
            max_attempts=args.attempts,
            base_delay=RETRY_BASE_DELAY_SECONDS,
            attempt_timeout=args.timeout,
        ),
        cancel_event=cancel_event,
        drain_timeout=DRAIN_TIMEOUT_SECONDS,
        verbose=not args.quiet,
        failed_log=FAILED_CALLS_LOG,
    )


def run_batch_command(args: argparse.Namespace, environ=None) -> int:
    tasks = build_tasks(args, environ)
    result = asyncio.run(_run_with_signals(tasks, args))
    if args.quiet:
        print_batch_summary(result)
    if args.export is not None:
        export_outcomes(result, args.export)

    if result.cancelled:
        return EXIT_CANCELLED
    return EXIT_FAILURES if result.failed else EXIT_OK


# ---------------------------------------------------------------------------
# Auth utility commands
# ---------------------------------------------------------------------------

def resolve_credential(args: argparse.Namespace, environ=None) -> Credential:
    """Keys from ``--api-key``/``--secret-key``, else from ``--currency``'s environment."""
    if args.currency:
        return load_gateway_config(environ).for_currency(args.currency).credential
    if args.secret_key:
        # Signing only needs the secret key
        return Credential(api_key=args.api_key or args.secret_key, secret_key=args.secret_key)
    raise ValidationError("Provide --currency, or --secret-key (and --api-key for encrypt)")


def run_sign_command(args: argparse.Namespace, environ=None) -> int:
    credential = resolve_credential(args, environ)
    if args.raw:
        payload = args.payload
    else:
        try:
            payload = json.loads(args.payload)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Payload is not valid JSON: {exc}") from exc
    print(sign(payload, credential.secret_key))
    return EXIT_OK


def run_encrypt_command(args: argparse.Namespace, environ=None) -> int:
    if not args.currency and not args.api_key:
        raise ValidationError("encrypt needs --api-key together with --secret-key")
    credential = resolve_credential(args, environ)
    if args.decrypt:
        print(decrypt(args.text, credential.api_key, credential.secret_key))
    else:
        print(encrypt(args.text, credential.api_key, credential.secret_key))
    return EXIT_OK


COMMANDS = {
    "deposit": run_batch_command,
    "payout": run_batch_command,
    "status": run_batch_command,
    "callback": run_batch_command,
    "sign": run_sign_command,
    "encrypt": run_encrypt_command,
}


def main(argv: list[str] | None = None, environ=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return COMMANDS[args.command](args, environ)
    except (ValidationError, AuthError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_INVALID
    except GatewayError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_FAILURES


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
