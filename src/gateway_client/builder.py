"""
Synthetic deposit/payout payload construction.

Every builder here is a pure function of its parameters, the currency
configuration, and an explicit ``random.Random`` instance: the same seed
yields the same payloads.  Per-currency differences live in the
``DEPOSIT_ENRICHERS`` / ``PAYOUT_ENRICHERS`` tables, each mapping a currency
code to a list of functions ``enrich(payload, params, rules, rng) -> payload``
applied in order.  Enrichers return a new dict and never mutate their input.
"""

from __future__ import annotations

import random
import string
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from .config import (
    CURRENCY_TABLE,
    DEPOSIT_CURRENCIES,
    MAX_BATCH_SIZE,
    MIN_AMOUNT,
    PAYOUT_CURRENCIES,
    PIX_ACCOUNT_TYPES,
)
from .credentials import CurrencyConfig
from .errors import ValidationError

Payload = dict[str, object]
Enricher = Callable[[Payload, "RequestParams", Mapping[str, object], random.Random], Payload]

_FIRST_NAMES = ["Arjun", "Linh", "Rahim", "Aung", "Lucas", "Putri", "Niran", "Sofia", "Minjun", "Haruto"]
_LAST_NAMES = ["Sharma", "Nguyen", "Hossain", "Kyaw", "Silva", "Wijaya", "Chaiyaporn", "Garcia", "Kim", "Sato"]
_IFSC_BANKS = ["HDFC", "ICIC", "SBIN", "UTIB", "KKBK", "PUNB", "BARB", "CNRB"]


@dataclass(frozen=True)
class RequestParams:
    """Already-validated inputs for one synthetic transaction."""

    currency: str
    amount: int | float | Decimal
    transaction_code: str
    timestamp: int
    user_id: int | str = 0
    bank_code: str = ""
    account_name: str = ""
    callback_url: str = ""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_currency(currency: str, kind: str = "deposit") -> str:
    """
    Normalize and check a currency code for a request kind.

    Raises:
        ValidationError: Currency is not supported for ``kind``.
    """
    supported = DEPOSIT_CURRENCIES if kind == "deposit" else PAYOUT_CURRENCIES
    code = (currency or "").strip().upper()
    if code not in supported:
        raise ValidationError(
            f"Invalid {kind} currency '{currency}'. Available: {'/'.join(supported)}"
        )
    return code


def validate_amount(amount: object) -> int | float | Decimal:
    """
    Check that ``amount`` is a positive number.

    Strings are accepted when they parse as a decimal number.

    Raises:
        ValidationError: Not a number, or not greater than zero.
    """
    if isinstance(amount, bool):
        raise ValidationError("Amount must be a positive number")
    if isinstance(amount, str):
        try:
            amount = Decimal(amount.strip())
        except InvalidOperation as exc:
            raise ValidationError(f"Amount must be a positive number; got {amount!r}") from exc
    if not isinstance(amount, (int, float, Decimal)) or not amount > 0:
        raise ValidationError(f"Amount must be a positive number; got {amount!r}")
    return amount


def validate_count(count: int, max_count: int = MAX_BATCH_SIZE) -> int:
    """
    Raises:
        ValidationError: ``count`` outside ``1..max_count``.
    """
    if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= max_count:
        raise ValidationError(f"Count must be between 1 and {max_count}; got {count!r}")
    return count


def validate_amount_range(min_amount: int, max_amount: int) -> tuple[int, int]:
    """
    Raises:
        ValidationError: ``min_amount > max_amount`` or ``min_amount < MIN_AMOUNT``.
    """
    if min_amount > max_amount:
        raise ValidationError("Minimum amount must be less than maximum amount")
    if min_amount < MIN_AMOUNT:
        raise ValidationError(f"Minimum amount must be at least {MIN_AMOUNT}")
    return min_amount, max_amount


def validate_bank_code(bank_code: str, currency: str) -> str:
    """
    Check a caller-supplied bank code against the currency rules.

    Currencies with ``default_bank_code`` or ``bank_code_options`` do not
    need one from the caller.

    Raises:
        ValidationError: Bank code required but empty, or not alphanumeric.
    """
    rules = CURRENCY_TABLE.get(currency, {})
    code = (bank_code or "").strip()
    if not code:
        needs_input = (
            rules.get("requires_bank_code")
            and not rules.get("default_bank_code")
            and not rules.get("bank_code_options")
        )
        if needs_input:
            raise ValidationError(f"Bank Code is required for {currency}")
        return ""
    if not code.isalnum():
        raise ValidationError("Bank Code must contain only letters and numbers")
    return code


# ---------------------------------------------------------------------------
# Random field generators
# ---------------------------------------------------------------------------

def generate_transaction_codes(
    prefix: str,
    count: int,
    start: int | None = None,
) -> list[str]:
    """
    Produce ``count`` consecutive transaction codes.

    Args:
        prefix: ``'TEST-DP'`` or ``'TEST-WD'``.
        count: Number of codes.
        start: Sequence base; defaults to the current Unix time.  The first
               code uses ``start + 1``.

    Returns:
        Codes like ``['TEST-DP-1700000001', 'TEST-DP-1700000002']``.
    """
    base = int(time.time()) if start is None else start
    return [f"{prefix}-{base + i}" for i in range(1, count + 1)]


def generate_utr(currency: str, rng: random.Random) -> str:
    """Bank reference number: 12 digits for INR, 6 for BDT, empty otherwise."""
    if currency == "INR":
        return str(rng.randint(100_000_000_000, 999_999_999_999))
    if currency == "BDT":
        return str(rng.randint(100_000, 999_999))
    return ""


def generate_custom_utr(rng: random.Random) -> str:
    """Callback UTR: four upper-case letters followed by ten digits."""
    letters = "".join(rng.choice(string.ascii_uppercase) for _ in range(4))
    return letters + "".join(str(rng.randrange(10)) for _ in range(10))


def random_amount(
min_amount: int, max_amount: int, rng: random.Random) -> int:
    return rng.randint(min_amount, max_amount)


def random_ip(rng: random.Random) -> str:
    """Random IPv4 or IPv6 address string (50/50)."""
    if rng.random() > 0.5:
        return ":".join(format(rng.randrange(0x10000), "x") for _ in range(8))
    return ".".join(str(rng.randrange(256)) for _ in range(4))


def random_phone_number(phone_format: str, rng: random.Random) -> str:
    """Local mobile number for ``'bdt'``, ``'idr'``, ``'mmk'``; Indian otherwise."""
    if phone_format == "bdt":
        return "01" + rng.choice("3456789") + "".join(str(rng.randrange(10)) for _ in range(8))
    if phone_format == "idr":
        return "08" + "".join(str(rng.randrange(10)) for _ in range(10))
    if phone_format == "mmk":
        return "09" + "".join(str(rng.randrange(10)) for _ in range(9))
    return rng.choice("6789") + "".join(str(rng.randrange(10)) for _ in range(9))


def random_account_number(digits: int, rng: random.Random) -> str:
    return str(rng.randint(10 ** (digits - 1), 10 ** digits - 1))


def random_card_number(rng: random.Random) -> str:
    return "4" + "".join(str(rng.randrange(10)) for _ in range(15))


def random_name(rng: random.Random) -> str:
    return f"{rng.choice(_FIRST_NAMES)} {rng.choice(_LAST_NAMES)}"


def random_ifsc(rng: random.Random) -> str:
    """IFSC-shaped code: 4-letter bank, '0', 6-digit branch."""
    return f"{rng.choice(_IFSC_BANKS)}0{rng.randint(0, 999_999):06d}"


def _pick_bank_code(params: RequestParams, rules: Mapping[str, object], rng: random.Random) -> str:
    if params.bank_code:
        return params.bank_code
    if rules.get("default_bank_code"):
        return str(rules["default_bank_code"])
    options = rules.get("bank_code_options")
    if options:
        return rng.choice(list(options))
    return ""


# ---------------------------------------------------------------------------
# Deposit enrichers
# ---------------------------------------------------------------------------

def _enrich_deposit_bank(payload: Payload, params, rules, rng) -> Payload:
    bank_code = _pick_bank_code(params, rules, rng)
    if not bank_code:
        return payload
    return {**payload, "bank_code": bank_code}


def _enrich_deposit_phone(payload: Payload, params, rules, rng) -> Payload:
    phone_format = rules.get("phone_format")
    if not phone_format:
        return payload
    return {**payload, "cust_phone": random_phone_number(str(phone_format), rng)}


def _enrich_wallet_phone(payload: Payload, params, rules, rng) -> Payload:
    # OVO (IDR) and WAVEPAY (MMK) wallets are addressed by phone number
    bank_code = payload.get("bank_code")
    if params.currency == "IDR" and bank_code == "OVO":
        return {**payload, "bank_account_number": random_phone_number("idr", rng)}
    if params.currency == "MMK" and bank_code == "WAVEPAY":
        return {**payload, "cust_phone": random_phone_number("mmk", rng)}
    return payload


def _enrich_customer_name(payload: Payload, params, rules, rng) -> Payload:
    if not rules.get("customer_name"):
        return payload
    return {**payload, "cust_name": params.account_name or random_name(rng)}


def _enrich_card_number(payload: Payload, params, rules, rng) -> Payload:
    if not rules.get("card_number"):
        return payload
    return {**payload, "card_number": random_card_number(rng)}


_DEFAULT_DEPOSIT_ENRICHERS: list[Enricher] = [
    _enrich_deposit_bank,
    _enrich_deposit_phone,
    _enrich_customer_name,
    _enrich_card_number,
]

DEPOSIT_ENRICHERS: dict[str, list[Enricher]] = {
    currency: list(_DEFAULT_DEPOSIT_ENRICHERS) for currency in DEPOSIT_CURRENCIES
}
DEPOSIT_ENRICHERS["IDR"].append(_enrich_wallet_phone)
DEPOSIT_ENRICHERS["MMK"].append(_enrich_wallet_phone)


# ---------------------------------------------------------------------------
# Payout enrichers
# ---------------------------------------------------------------------------

def _enrich_ifsc(payload: Payload, params, rules, rng) -> Payload:
    if not rules.get("requires_ifsc"):
        return payload
    ifsc_code = random_ifsc(rng)
    bank = ifsc_code[:4]
    return {
        **payload,
        "ifsc_code": ifsc_code,
        "bank_account_number": random_account_number(6, rng),
        "bank_code": bank,
        "bank_name": bank,
    }


def _enrich_payout_bank(payload: Payload, params, rules, rng) -> Payload:
    if not rules.get("requires_bank_code"):
        return payload
    bank_code = _pick_bank_code(params, rules, rng)
    enriched = {
        **payload,
        "bank_code": bank_code,
        "bank_account_number": random_account_number(11, rng),
    }
    if params.currency == "BRL" and bank_code == "PIX":
        enriched["account_type"] = rng.choice(PIX_ACCOUNT_TYPES)
    if rules.get("payout_bank_name"):
        enriched["bank_name"] = rules["payout_bank_name"]
    return enriched


PAYOUT_ENRICHERS: dict[str, list[Enricher]] = {
    currency: [_enrich_ifsc, _enrich_payout_bank] for currency in PAYOUT_CURRENCIES
}


def _apply(enrichers: list[Enricher], payload: Payload, params: RequestParams,
           rules: Mapping[str, object], rng: random.Random) -> Payload:
    for enrich in enrichers:
        payload = enrich(payload, params, rules, rng)
    return payload


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def build_deposit_payload(
    params: RequestParams,
    config: CurrencyConfig,
    rng: random.Random,
    protocol: str = "signed",
) -> Payload:
    """
    Build a deposit payload for ``config.currency``.

    The encrypted protocol sends the payload as a query string that also
    carries the merchant identity; the signed protocol identifies the
    merchant through the URL and the signature.

    Args:
        params: Transaction parameters.
        config: Currency configuration (merchant code, methods, rules).
        rng: Random source for generated fields.
        protocol: ``'encrypted'`` or ``'signed'``.

    Returns:
        Ordered payload dict.
    """
    callback_url = params.callback_url or config.callback_url

    if protocol == "encrypted":
        base: Payload = {
            "callback_url": callback_url,
            "merchant_api_key": config.credential.api_key,
            "merchant_code": config.merchant_code,
            "transaction_code": params.transaction_code,
            "transaction_timestamp": params.timestamp,
            "transaction_amount": params.amount,
            "user_id": params.user_id,
            "currency_code": params.currency,
            "payment_code": config.deposit_method,
        }
    else:
        base = {
            "transaction_code": params.transaction_code,
            "transaction_amount": params.amount,
            "payment_code": config.deposit_method,
            "user_id": str(params.user_id),
            "currency_code": params.currency,
            "callback_url": callback_url,
            "ip_address": random_ip(rng),
        }

    enrichers = DEPOSIT_ENRICHERS.get(params.currency, _DEFAULT_DEPOSIT_ENRICHERS)
    return _apply(enrichers, base, params, config.rules, rng)


def build_payout_payload(
    params: RequestParams,
    config: CurrencyConfig,
    rng: random.Random,
) -> Payload:
    """
    Build a payout payload for ``config.currency``.

    Amount, timestamp, and user id are sent as strings, as the payout
    endpoints expect.
    """
    base: Payload = {
        "merchant_code": config.merchant_code,
        "transaction_code": params.transaction_code,
        "transaction_timestamp": str(params.timestamp),
        "transaction_amount": str(params.amount),
        "user_id": str(params.user_id),
        "currency_code": params.currency,
        "payout_code": config.payout_method,
        "account_name": params.account_name or random_name(rng),
        "ip_user": random_ip(rng),
        "callback_url": params.callback_url or config.callback_url,
    }
    enrichers = PAYOUT_ENRICHERS.get(params.currency, [])
    return _apply(enrichers, base, params, config.rules, rng)


def build_utr_payload(transaction_code: str, utr: str, protocol: str = "signed") -> Payload:
    """UTR submission payload; the signed endpoint names the field ``reference``."""
    if protocol == "encrypted":
        return {"transaction_code": transaction_code, "utr": utr}
    return {"transaction_code": transaction_code, "reference": utr}


def build_status_payload(request_no: str) -> Payload:
    """Payout status lookup payload."""
    if not request_no:
        raise ValidationError("request_no is required")
    return {"request_no": request_no}


# ---------------------------------------------------------------------------
# Callback notifications
# ---------------------------------------------------------------------------

CALLBACK_SUCCESS = 0
CALLBACK_FAILED = 1


def callback_kind_for(transaction_no: str) -> str:
    """
    Pick the notification endpoint from a transaction number's prefix.

    ``DP...`` is a deposit and ``WD...`` a payout.  Anything else is treated
    as a payout, the gateway's own default.
    """
    prefix = (transaction_no or "").strip()[:2].upper()
    return "deposit" if prefix == "DP" else "payout"


def _as_number(amount: int | float | Decimal) -> int | float:
    if isinstance(amount, Decimal):
        return int(amount) if amount == amount.to_integral_value() else float(amount)
    return amount


def _close_time() -> str:
    # Millisecond precision with a Z suffix, e.g. 2024-05-01T08:30:00.123Z
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_callback_payload(
    transaction_no: str,
    amount: object,
    utr: str | None,
    status: int = CALLBACK_SUCCESS,
    kind: str = "deposit",
    system_order_id: str | None = None,
    close_time: str | None = None,
    remark: str | None = None,
    note: str | None = None,
    rng: random.Random | None = None,
) -> Payload:
    """
    Build the notification the gateway's provider would post back.

    Args:
        transaction_no: Gateway transaction number (sent as ``orderId``).
        amount: Transaction amount; sent as both amount and actual amount.
        utr: Bank reference.  Payout notifications drop it unless the
            status is success.
        status: ``0`` success, ``1`` failed.
        kind: ``'deposit'`` or ``'payout'``.
        system_order_id: Provider-side order id; random 5-digit when omitted.
        close_time: ISO-8601 UTC close time; now when omitted.
        remark: Free-text remark.
        note: Payout-only note.
        rng: Random source for the default ``system_order_id``.

    Returns:
        Ordered payload dict.

    Raises:
        ValidationError: Bad transaction number, amount, status or kind.
    """
    if not transaction_no or not transaction_no.strip():
        raise ValidationError("Transaction number is required for a callback")
    if status not in (CALLBACK_SUCCESS, CALLBACK_FAILED):
        raise ValidationError(f"Callback status must be 0 (success) or 1 (failed); got {status!r}")
    if kind not in ("deposit", "payout"):
        raise ValidationError(f"Callback kind must be 'deposit' or 'payout'; got {kind!r}")
    value = _as_number(validate_amount(amount))
    rng = rng or random.Random()

    payload: Payload = {
        "systemOrderId": system_order_id or str(rng.randrange(100_000)),
        "orderId": transaction_no.strip(),
        "amount": value,
        "actualAmount": value,
        "status": status,
        "closeTime": close_time or _close_time(),
        "remark": remark or "",
    }
    if kind == "deposit":
        payload["utr"] = utr
    else:
        payload["utr"] = utr if status == CALLBACK_SUCCESS else None
        payload["note"] = note or None
    return payload


# ---------------------------------------------------------------------------
# KRW customer creation
# ---------------------------------------------------------------------------

def build_customer_payload(rng: random.Random, timestamp: int | None = None) -> Payload:
    """
    Individual-customer registration payload for the KRW v4 endpoint.

    Only the e-mail address (from ``timestamp``, milliseconds) and the
    10-digit bank account number vary between calls.
    """
    stamp = int(time.time() * 1000) if timestamp is None else timestamp
    return {
        "partnerType": "INDIVIDUAL",
        "fullname": "Hanseol LIM",
        "givenNames": "Hanseol",
        "lastName": "Lim",
        "fullnameKo": "임한설",
        "phoneNumber": "",
        "phoneCountryCode": "KR",
        "email": f"test{stamp}@test.com",
        "idNumber": "",
        "idType": "FOREIGN_RESIDENT_CARD",
        "dateOfBirth": "",
        "address": {
            "address1": "Teheran-ro, Gangnam-Gu",
            "address2": "",
            "city": "",
            "countryCode": "KR",
            "state": "",
            "province": "",
            "zipCode": "",
        },
        "bankInformation": {
            "bankAccountNumber": random_account_number(10, rng),
            "bankCode": "IBK",
            "dateOfBirth": "961120",
            "accountHolderName": "Hanseol Lim",
        },
    }
