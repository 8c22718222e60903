"""
Authenticated request construction and single-request execution.

Two authentication protocols exist per request kind (see ``ENDPOINTS``):

- ``encrypted``: the payload is AES-encrypted and sent as ``{"key": ...}``.
  Deposit and UTR submissions encrypt a ``k=v&k=v`` query string; payouts
  encrypt the canonical JSON.
- ``signed``: the canonical JSON is sent as-is with the HMAC signature in
  the ``sign`` header.

Two auxiliary protocols serve single endpoints: ``plain`` (callback
notifications, unauthenticated JSON) and ``merchant_header`` (KRW customer
creation, JSON plus the AES-encrypted merchant code in a header).

Every signed request is verified against its own signature before it is
sent, so a serializer mismatch fails locally instead of at the gateway.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import requests

from src.auth.canonical import canonicalize, to_query_string
from src.auth.cipher import encrypt, encrypt_object
from src.auth.signer import sign, verify_or_raise

from .config import ENDPOINTS, MERCHANT_CODE_HEADER, REQUEST_TIMEOUT_SECONDS, SIGNATURE_HEADER
from .credentials import CurrencyConfig
from .parser import parse_callback_response, parse_gateway_response
from .transport import send_async

# Request kinds whose JSON ``status`` must report success
STATUS_CHECKED_KINDS = frozenset({"deposit", "payout"})

# Encrypted kinds whose plaintext is a query string rather than JSON
QUERY_STRING_KINDS = frozenset({"deposit", "submit_utr"})

# Simulated gateway notifications; their responses may be plain text
CALLBACK_KINDS = frozenset({"deposit_callback", "payout_callback"})


@dataclass(frozen=True)
class AuthenticatedRequest:
    """A request ready for the transport: nothing left to sign or encrypt."""

    kind: str
    url: str
    method: str
    headers: dict = field(default_factory=dict)
    body: str | None = None


def resolve_endpoint(kind: str, protocol: str) -> tuple[str, str]:
    """
    Look up ``(method, path_template)`` for a request kind and protocol.

    Raises:
        ValueError: Unknown kind, or the kind has no endpoint for ``protocol``.
    """
    if kind not in ENDPOINTS:
        raise ValueError(f"Unknown request kind '{kind}'. Available: {list(ENDPOINTS)}")
    by_protocol = ENDPOINTS[kind]
    if protocol not in by_protocol:
        raise ValueError(
            f"Request kind '{kind}' does not support the '{protocol}' protocol. "
            f"Available: {list(by_protocol)}"
        )
    return by_protocol[protocol]


def build_authenticated_request(
    kind: str,
    protocol: str,
    payload: dict,
    config: CurrencyConfig,
) -> AuthenticatedRequest:
    """
    Serialize, then encrypt or sign, a payload for one endpoint.

    Args:
        kind: A key of ``ENDPOINTS``, e.g. ``'deposit'`` or ``'payout_status'``.
        protocol: ``'encrypted'``, ``'signed'``, ``'plain'`` or ``'merchant_header'``.
        payload: Payload from one of the ``build_*_payload`` functions.
        config: Currency configuration supplying URL and credentials.

    Returns:
        :class:`AuthenticatedRequest`.

    Raises:
        ValueError: Unknown kind/protocol combination.
        SerializationError: Payload cannot be canonicalized.
        KeyDerivationError: Credential keys are empty.
    """
    method, path = resolve_endpoint(kind, protocol)
    url = config.endpoint_url(path)
    credential = config.credential

    if protocol == "plain":
        return AuthenticatedRequest(
            kind=kind,
            url=url,
            method=method,
            headers={"Content-Type": "application/json"},
            body=canonicalize(payload),
        )

    if protocol == "merchant_header":
        merchant_code = encrypt(config.merchant_code, credential.api_key, credential.secret_key)
        return AuthenticatedRequest(
            kind=kind,
            url=url,
            method=method,
            headers={"Content-Type": "application/json", MERCHANT_CODE_HEADER: merchant_code},
            body=canonicalize(payload),
        )

    if protocol == "encrypted":
        if kind in QUERY_STRING_KINDS:
            cipher_text = encrypt(to_query_string(payload), credential.api_key, credential.secret_key)
        else:
            cipher_text = encrypt_object(payload, credential.api_key, credential.secret_key)
        return AuthenticatedRequest(
            kind=kind,
            url=url,
            method=method,
            headers={"Content-Type": "application/json"},
            body=json.dumps({"key": cipher_text}),
        )

    body = canonicalize(payload)
    signature = sign(body, credential.secret_key)
    verify_or_raise(body, signature, credential.secret_key)
    return AuthenticatedRequest(
        kind=kind,
        url=url,
        method=method,
        headers={"Content-Type": "application/json", SIGNATURE_HEADER: signature},
        body=body,
    )


async def execute_gateway_request(
    request: AuthenticatedRequest,
    config: CurrencyConfig,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
    session: requests.Session | None = None,
) -> dict:
    """
    Send one authenticated request and classify the response.

    Stateless: nothing is carried between calls, so the retry wrapper may
    invoke it again with the same request.  Callback responses are
    accepted as JSON or plain text (see :func:`parser.parse_callback_response`).

    Args:
        request: From :func:`build_authenticated_request`.
        config: Currency configuration (credential for response decryption).
        timeout: Transport timeout in seconds.
        session: Optional shared ``requests.Session``.

    Returns:
        Parsed response dict.

    Raises:
        NetworkError: Connection failure or timeout.
        HttpError: Non-2xx status.
        ParseError: Body is not a JSON object.
        GatewayRejectedError: Deposit/payout status is not success.
    """
    response = await send_async(
        request.url,
        method=request.method,
        headers=request.headers,
        body=request.body,
        timeout=timeout,
        session=session,
    )
    if request.kind in CALLBACK_KINDS:
        return parse_callback_response(response)
    return parse_gateway_response(
        response,
        credential=config.credential,
        require_success_status=request.kind in STATUS_CHECKED_KINDS,
    )
