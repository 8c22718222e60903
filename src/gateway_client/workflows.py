"""
Deposit, payout, status, and callback workflows expressed as batch tasks.

All validation and request construction happen here, before the batch
starts: a bad currency, amount, count, or bank code raises
``ValidationError`` and nothing is sent.  Each returned :class:`Task` holds
a fully authenticated request; its action only performs I/O.

A deposit task's action sends the deposit alone.  The UTR submission and
the simulated callback run as the task's follow-up, once, after the
deposit succeeded: each step has its own timeout and its failure is
recorded on the result (``utr_error`` / ``callback_error``) instead of
failing or retrying the deposit.
"""

from __future__ import annotations

import asyncio
import random
import re
import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

import requests

from src.auth.errors import AuthError

from .builder import (
    CALLBACK_FAILED,
    CALLBACK_SUCCESS,
    RequestParams,
    build_callback_payload,
    build_customer_payload,
    build_deposit_payload,
    build_payout_payload,
    build_status_payload,
    build_utr_payload,
    callback_kind_for,
    generate_custom_utr,
    generate_transaction_codes,
    generate_utr,
    random_amount,
    validate_amount,
    validate_amount_range,
    validate_bank_code,
    validate_count,
    validate_currency,
)
from .config import (
    CALLBACK_CURRENCIES,
    CALLBACK_SUCCESS_RATE,
    DEPOSIT_CODE_PREFIX,
    PAYOUT_CODE_PREFIX,
    PROTOCOLS,
    REQUEST_TIMEOUT_SECONDS,
)
from .credentials import CurrencyConfig
from .errors import GatewayError, ValidationError
from .executor import AuthenticatedRequest, build_authenticated_request, execute_gateway_request
from .outcomes import Task
from .parser import extract_customer_id

_CALLBACK_NUMBER = re.compile(r"^(DP|WD)\d+$", re.IGNORECASE)


def _validate_protocol(protocol: str) -> str:
    if protocol not in PROTOCOLS:
        raise ValidationError(f"Invalid protocol '{protocol}'. Available: {'/'.join(PROTOCOLS)}")
    return protocol


def _resolve_amounts(
    count: int,
    amount: object | None,
    amount_range: tuple[int, int] | None,
    rng: random.Random,
) -> list[int | float | Decimal]:
    if amount is not None:
        fixed = validate_amount(amount)
        return [fixed] * count
    if amount_range is None:
        raise ValidationError("Either amount or amount_range is required")
    low, high = validate_amount_range(*amount_range)
    return [random_amount(low, high, rng) for _ in range(count)]


def _request_action(
    request: AuthenticatedRequest,
    config: CurrencyConfig,
    timeout: float,
    session: requests.Session | None,
):
    async def action() -> dict:
        return await execute_gateway_request(request, config, timeout=timeout, session=session)
    return action


@dataclass(frozen=True)
class CallbackPlan:
    """Pre-drawn fields of the callback that follows one deposit."""

    amount: int | float | Decimal
    utr: str
    system_order_id: str


async def _send_follow_up_request(
    label: str,
    request: AuthenticatedRequest,
    config: CurrencyConfig,
    timeout: float,
    session: requests.Session | None,
) -> tuple[dict | None, str | None]:
    """Send one post-deposit request; returns ``(result, None)`` or ``(None, error)``."""
    try:
        result = await asyncio.wait_for(
            execute_gateway_request(request, config, timeout=timeout, session=session),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        return None, f"TimeoutError: {label} timed out after {timeout}s"
    except (GatewayError, AuthError) as exc:
        return None, f"{type(exc).__name__}: {exc}"
    return result, None


def _deposit_follow_up(
    utr_request: AuthenticatedRequest | None,
    callback: CallbackPlan | None,
    config: CurrencyConfig,
    timeout: float,
    session: requests.Session | None,
):
    async def follow_up(result: dict) -> dict:
        enriched = dict(result)

        if utr_request is not None:
            utr_result, error = await _send_follow_up_request(
                "UTR submission", utr_request, config, timeout, session
            )
            if error is None:
                enriched["utr_submission"] = utr_result
            else:
                enriched["utr_error"] = error

        if callback is not None:
            transaction_no = result.get("transaction_no")
            if not transaction_no:
                enriched["callback_error"] = "No transaction_no in deposit response; callback skipped"
                return enriched
            try:
                payload = build_callback_payload(
                    str(transaction_no),
                    callback.amount,
                    callback.utr,
                    status=CALLBACK_SUCCESS,
                    kind="deposit",
                    system_order_id=callback.system_order_id,
                )
                request = build_authenticated_request("deposit_callback", "plain", payload, config)
            except (ValidationError, AuthError) as exc:
                enriched["callback_error"] = f"{type(exc).__name__}: {exc}"
                return enriched
            callback_result, error = await _send_follow_up_request(
                "Callback", request, config, timeout, session
            )
            if error is None:
                enriched["callback"] = callback_result
            else:
                enriched["callback_error"] = error

        return enriched
    return follow_up


def build_deposit_tasks(
    config: CurrencyConfig,
    count: int,
    amount: object | None = None,
    amount_range: tuple[int, int] | None = None,
    protocol: str = "signed",
    bank_code: str = "",
    user_id: int | str = 0,
    submit_utr: bool = True,
    send_callback: bool = False,
    rng: random.Random | None = None,
    start: int | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> list[Task]:
    """
    Build one deposit task per transaction.

    INR and BDT deposits are followed by a UTR submission for the same
    transaction code when ``submit_utr`` is true.  With ``send_callback``
    the gateway's success notification for the new ``transaction_no`` is
    simulated afterwards (INR and VND only).

    Args:
        config: Currency configuration.
        count: Number of deposits (1..MAX_BATCH_SIZE).
        amount: Fixed amount for every deposit.
        amount_range: ``(min, max)`` for random integer amounts; used when
            ``amount`` is ``None``.
        protocol: ``'encrypted'`` or ``'signed'``.
        bank_code: Caller-chosen bank code; otherwise picked from the
            currency's options.
        user_id: Merchant-side user id.
        submit_utr: Follow successful INR/BDT deposits with a UTR submission.
        send_callback: Follow successful deposits with a success callback.
        rng: Random source; a fresh ``random.Random()`` when omitted.
        start: Transaction-code sequence base (defaults to Unix time).
        timeout: Per-request timeout, applied to the deposit and to each
            follow-up request separately.
        session: Optional shared ``requests.Session``.

    Returns:
        Tasks keyed by transaction code.

    Raises:
        ValidationError: Any parameter is invalid.
    """
    currency = validate_currency(config.currency, "deposit")
    protocol = _validate_protocol(protocol)
    count = validate_count(count)
    bank_code = validate_bank_code(bank_code, currency)
    if send_callback and currency not in CALLBACK_CURRENCIES:
        raise ValidationError(
            f"Callbacks are not supported for {currency}. Available: {'/'.join(CALLBACK_CURRENCIES)}"
        )
    rng = rng or random.Random()

    amounts = _resolve_amounts(count, amount, amount_range, rng)
    codes = generate_transaction_codes(DEPOSIT_CODE_PREFIX, count, start)
    timestamp = int(time.time())
    with_utr = submit_utr and bool(config.rules.get("utr"))

    tasks: list[Task] = []
    for code, value in zip(codes, amounts):
        params = RequestParams(
            currency=currency,
            amount=value,
            transaction_code=code,
            timestamp=timestamp,
            user_id=user_id,
            bank_code=bank_code,
        )
        payload = build_deposit_payload(params, config, rng, protocol=protocol)
        request = build_authenticated_request("deposit", protocol, payload, config)

        utr = generate_utr(currency, rng) if with_utr or send_callback else ""
        utr_request = None
        if with_utr:
            utr_payload = build_utr_payload(code, utr, protocol)
            utr_request = build_authenticated_request("submit_utr", protocol, utr_payload, config)

        callback = None
        if send_callback:
            callback = CallbackPlan(
                amount=value,
                utr=utr or generate_custom_utr(rng),
                system_order_id=str(rng.randrange(100_000)),
            )

        follow_up = None
        if utr_request is not None or callback is not None:
            follow_up = _deposit_follow_up(utr_request, callback, config, timeout, session)

        tasks.append(Task(
            task_id=code,
            action=_request_action(request, config, timeout, session),
            context={
                "kind": "deposit",
                "protocol": protocol,
                "currency": currency,
                "transaction_code": code,
                "amount": str(value),
            },
            follow_up=follow_up,
        ))
    return tasks


def build_payout_tasks(
    config: CurrencyConfig,
    count: int,
    amount: object | None = None,
    amount_range: tuple[int, int] | None = None,
    protocol: str = "signed",
    bank_code: str = "",
    account_name: str = "",
    user_id: int = 0,
    rng: random.Random | None = None,
    start: int | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> list[Task]:
    """
    Build one payout task per transaction.

    Same arguments as :func:`build_deposit_tasks`, plus ``account_name``
    (random when empty).

    Raises:
        ValidationError: Any parameter is invalid, including a currency
            without payout support.
    """
    currency = validate_currency(config.currency, "payout")
    protocol = _validate_protocol(protocol)
    count = validate_count(count)
    bank_code = validate_bank_code(bank_code, currency)
    rng = rng or random.Random()

    amounts = _resolve_amounts(count, amount, amount_range, rng)
    codes = generate_transaction_codes(PAYOUT_CODE_PREFIX, count, start)
    timestamp = int(time.time())

    tasks: list[Task] = []
    for code, value in zip(codes, amounts):
        params = RequestParams(
            currency=currency,
            amount=value,
            transaction_code=code,
            timestamp=timestamp,
            user_id=user_id,
            bank_code=bank_code,
            account_name=account_name,
        )
        payload = build_payout_payload(params, config, rng)
        request = build_authenticated_request("payout", protocol, payload, config)
        tasks.append(Task(
            task_id=code,
            action=_request_action(request, config, timeout, session),
            context={
                "kind": "payout",
                "protocol": protocol,
                "currency": currency,
                "transaction_code": code,
                "amount": str(value),
            },
        ))
    return tasks


def build_status_tasks(
    config: CurrencyConfig,
    request_numbers: list[str],
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> list[Task]:
    """One signed payout-status lookup per request number."""
    if not request_numbers:
        raise ValidationError("At least one request number is required")

    tasks: list[Task] = []
    for request_no in request_numbers:
        payload = build_status_payload(request_no.strip())
        request = build_authenticated_request("payout_status", "signed", payload, config)
        tasks.append(Task(
            task_id=request_no.strip(),
            action=_request_action(request, config, timeout, session),
            context={"kind": "payout_status", "protocol": "signed", "currency": config.currency},
        ))
    return tasks


def build_callback_tasks(
    config: CurrencyConfig,
    transactions: Sequence[tuple[str, object]],
    success_rate: float = CALLBACK_SUCCESS_RATE,
    rng: random.Random | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> list[Task]:
    """
    One simulated gateway notification per ``(transaction_no, amount)``.

    The endpoint (deposit or payout) follows the transaction number's
    prefix.  Each notification reports success with probability
    ``success_rate``; successful ones carry a generated UTR.

    Raises:
        ValidationError: Unsupported currency, empty or oversized list,
            bad amount, or ``success_rate`` outside 0..1.
    """
    currency = (config.currency or "").upper()
    if currency not in CALLBACK_CURRENCIES:
        raise ValidationError(
            f"Callbacks are not supported for {currency}. Available: {'/'.join(CALLBACK_CURRENCIES)}"
        )
    if not transactions:
        raise ValidationError("At least one transaction is required")
    validate_count(len(transactions))
    if not 0.0 <= success_rate <= 1.0:
        raise ValidationError(f"Success rate must be between 0 and 1; got {success_rate!r}")
    rng = rng or random.Random()

    tasks: list[Task] = []
    for transaction_no, amount in transactions:
        transaction_no = (transaction_no or "").strip().upper()
        if not _CALLBACK_NUMBER.match(transaction_no):
            print(f"  Warning: '{transaction_no}' does not look like DP<digits> or WD<digits>")
        kind = callback_kind_for(transaction_no)
        status = CALLBACK_SUCCESS if rng.random() < success_rate else CALLBACK_FAILED
        utr = generate_custom_utr(rng) if status == CALLBACK_SUCCESS else None
        payload = build_callback_payload(
            transaction_no,
            amount,
            utr,
            status=status,
            kind=kind,
            system_order_id=str(rng.randrange(100_000)),
        )
        request = build_authenticated_request(f"{kind}_callback", "plain", payload, config)
        tasks.append(Task(
            task_id=transaction_no,
            action=_request_action(request, config, timeout, session),
            context={
                "kind": f"{kind}_callback",
                "protocol": "plain",
                "currency": currency,
                "transaction_code": transaction_no,
                "amount": str(payload["amount"]),
                "callback_status": "success" if status == CALLBACK_SUCCESS else "failed",
            },
        ))
    return tasks


async def create_customer(
    config: CurrencyConfig,
    rng: random.Random | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> str:
    """
    Register a throwaway individual customer and return its ``user_id``.

    KRW deposits can reference this id instead of a merchant-side user id.
    Not retried: a second attempt would register a second customer.

    Raises:
        ValidationError: Currency has no customer registration.
        GatewayError: Transport failure, non-2xx status, unparseable body,
            or a response without ``success: true`` and ``data.user_id``.
    """
    if not config.rules.get("create_customer"):
        raise ValidationError(f"Customer creation is not supported for {config.currency}")
    payload = build_customer_payload(rng or random.Random())
    request = build_authenticated_request("create_customer", "merchant_header", payload, config)
    result = await execute_gateway_request(request, config, timeout=timeout, session=session)
    return extract_customer_id(result)
