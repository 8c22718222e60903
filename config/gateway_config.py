"""
Gateway endpoint and per-currency configuration.

This is the AUTHORITATIVE source for currency and endpoint configuration.
src/gateway_client/config.py imports from here; do not maintain parallel
copies.

BEFORE RUNNING A BATCH:
1. Set BASE_URL and CALLBACK_URL for the target gateway environment.
2. For each currency you exercise, set the five per-currency variables
   listed under ENV_VAR_TEMPLATES (e.g. MERCHANT_CODE_INR, SECRET_KEY_INR).

ENVIRONMENT VARIABLES:
    BASE_URL               : Gateway base URL (no trailing slash)
    CALLBACK_URL           : Merchant callback URL sent in payloads
    MERCHANT_CODE_<CUR>    : Merchant code, also part of every endpoint path
    MERCHANT_API_KEY_<CUR> : API key (derives the AES key)
    SECRET_KEY_<CUR>       : Secret key (derives the IV and HMAC key)
    DEPOSIT_METHOD_<CUR>   : Deposit payment_code
    PAYOUT_METHOD_<CUR>    : Payout payout_code
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------

BASE_URL_ENV: str = "BASE_URL"
CALLBACK_URL_ENV: str = "CALLBACK_URL"

# Formatted with the upper-case currency code
ENV_VAR_TEMPLATES: dict[str, str] = {
    "merchant_code":  "MERCHANT_CODE_{currency}",
    "api_key":        "MERCHANT_API_KEY_{currency}",
    "secret_key":     "SECRET_KEY_{currency}",
    "deposit_method": "DEPOSIT_METHOD_{currency}",
    "payout_method":  "PAYOUT_METHOD_{currency}",
}

# ---------------------------------------------------------------------------
# Currency table: one entry per supported currency
# ---------------------------------------------------------------------------
#
# Fields:
#   deposit            : currency accepts deposits
#   payout             : currency accepts payouts
#   bank_code_options  : deposit bank codes picked at random when the caller
#                         does not supply one
#   requires_bank_code : caller must supply a bank code (unless a
#                         default_bank_code exists)
#   default_bank_code  : fixed bank code for the currency's only rail
#   requires_ifsc      : payout carries an IFSC code + bank account (INR)
#   utr                : successful deposits are followed by a UTR submission
#   phone_format       : deposit carries a generated phone number
#   card_number        : deposit carries a generated card number
#   payout_bank_name   : fixed bank_name added to payouts
#   customer_name      : deposit carries a customer name
#   callback           : gateway callback notifications can be simulated
#   create_customer    : deposits may use a user id from v4 create-customer

CURRENCY_TABLE: dict[str, dict] = {
    "INR": {
        "deposit": True,
        "payout": True,
        "requires_ifsc": True,
        "utr": True,
        "callback": True,
    },
    "VND": {
        "deposit": True,
        "payout": True,
        "bank_code_options": ["acbbank", "bidv", "mbbank", "tpbank", "vpbank"],
        "requires_bank_code": True,
        "callback": True,
    },
    "BDT": {
        "deposit": True,
        "payout": True,
        "bank_code_options": ["1002", "1001", "1004", "1003"],
        "requires_bank_code": True,
        "utr": True,
        "phone_format": "bdt",
    },
    "MMK": {
        "deposit": True,
        "payout": False,
        "requires_bank_code": True,
    },
    "BRL": {
        "deposit": True,
        "payout": True,
        "requires_bank_code": True,
        "default_bank_code": "PIX",
    },
    "IDR": {
        "deposit": True,
        "payout": True,
        "bank_code_options": ["BCA", "DANA", "OVO", "GOPAY", "MANDIRI", "BNI"],
        "requires_bank_code": True,
    },
    "THB": {
        "deposit": True,
        "payout": True,
        "bank_code_options": ["BBL", "GSB", "KTB", "SCBEASY"],
        "requires_bank_code": True,
        "card_number": True,
        "payout_bank_name": "SCB",
    },
    "MXN": {
        "deposit": True,
        "payout": True,
        "requires_bank_code": True,
        "default_bank_code": "SPEI",
    },
    "KRW": {
        "deposit": True,
        "payout": True,
        "requires_bank_code": True,
        "customer_name": True,
        "payout_bank_name": "우리은행",
        "create_customer": True,
    },
    "PHP": {
        "deposit": True,
        "payout": True,
        "requires_bank_code": True,
    },
    "JPY": {
        "deposit": True,
        "payout": True,
        "requires_bank_code": True,
        "customer_name": True,
    },
}

SUPPORTED_CURRENCIES: list[str] = list(CURRENCY_TABLE.keys())
DEPOSIT_CURRENCIES: list[str] = [c for c, cfg in CURRENCY_TABLE.items() if cfg.get("deposit")]
PAYOUT_CURRENCIES: list[str] = [c for c, cfg in CURRENCY_TABLE.items() if cfg.get("payout")]

# PIX key types accepted for BRL payouts
PIX_ACCOUNT_TYPES: list[str] = ["CPF", "CPNJ", "EMAIL", "PHONE", "EVP"]

# Currencies whose callback notifications can be simulated
CALLBACK_CURRENCIES: list[str] = [c for c, cfg in CURRENCY_TABLE.items() if cfg.get("callback")]

# ---------------------------------------------------------------------------
# Endpoints: request kind → protocol → (HTTP method, path template)
# ---------------------------------------------------------------------------
#
# Protocols:
#   'encrypted' → body {"key": <AES ciphertext>}            (v3 / v1 payout)
#   'signed'    → canonical JSON body + "sign" header       (v5)
#   'plain'     → canonical JSON body, no authentication   (callback simulation)
#   'merchant_header' → JSON body + encrypted merchant code header (v4 KRW customer)
# Only 'encrypted' and 'signed' are selectable for deposits and payouts.
# Path templates are formatted with merchant_code.

ENDPOINTS: dict[str, dict[str, tuple[str, str]]] = {
    "deposit": {
        "encrypted": ("POST", "/api/{merchant_code}/v3/dopayment"),
        "signed":    ("POST", "/api/{merchant_code}/v5/generateDeposit"),
    },
    "payout": {
        "encrypted": ("POST", "/api/v1/payout/{merchant_code}"),
        "signed":    ("POST", "/api/{merchant_code}/v5/payout"),
    },
    "submit_utr": {
        "encrypted": ("POST", "/api/{merchant_code}/v3/submit-utr"),
        "signed":    ("POST", "/api/{merchant_code}/v5/submitReference"),
    },
    "payout_status": {
        "signed":    ("GET",  "/api/{merchant_code}/v5/checkWDRequestStatus"),
    },
    "deposit_callback": {
        "plain":     ("POST", "/api/v2/payxyz/deposit/notification"),
    },
    "payout_callback": {
        "plain":     ("POST", "/api/v2/payxyz/payout/notification"),
    },
    "create_customer": {
        "merchant_header": ("POST", "/{merchant_code}/v4/create-customer"),
    },
}

PROTOCOLS: list[str] = ["encrypted", "signed"]

# Header that carries the v5 signature
SIGNATURE_HEADER: str = "sign"

# Header that carries the encrypted merchant code (KRW customer creation)
MERCHANT_CODE_HEADER: str = "X-Encrypted-MerchantCode"
