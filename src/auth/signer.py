"""
HMAC-SHA256 request signatures for the signed (v5) gateway protocol.

    message   = normalize_message(canonicalize(payload))   # or the raw string
    signature = base64(hex(HMAC-SHA256(sign_key, message)))

The hex digest text itself is base64-encoded (not the raw digest bytes);
gateways verify that exact double encoding.
"""

from __future__ import annotations

import base64
import hashlib
import hmac

from .canonical import canonicalize
from .errors import SignatureMismatchError
from .keys import derive_sign_key

_FIRST_ESCAPED_CODE_POINT = 0x7F


def _escape_code_unit(unit: int) -> str:
    return f"\\u{unit:04x}"


def normalize_message(message: str) -> str:
    """
    Replace every character at or above U+007F with a ``\\uXXXX`` escape.

    Characters outside the Basic Multilingual Plane become two escapes,
    one per UTF-16 surrogate, so the result matches signers that work on
    UTF-16 strings.

    Args:
        message: Canonical payload text or a raw message string.

    Returns:
        Pure-ASCII text.
    """
    out: list[str] = []
    for char in message:
        code_point = ord(char)
        if code_point < _FIRST_ESCAPED_CODE_POINT:
            out.append(char)
        elif code_point <= 0xFFFF:
            out.append(_escape_code_unit(code_point))
        else:
            offset = code_point - 0x10000
            out.append(_escape_code_unit(0xD800 + (offset >> 10)))
            out.append(_escape_code_unit(0xDC00 + (offset & 0x3FF)))
    return "".join(out)


def signing_message(payload: object) -> str:
    """Return the normalized text that is actually fed to HMAC."""
    message = payload if isinstance(payload, str) else canonicalize(payload)
    return normalize_message(message)


def sign(payload: object, secret_key: str) -> str:
    """
    Sign a payload with a merchant secret key.

    Args:
        payload: Mapping/list (canonicalized first) or an already
                 serialized string (signed as-is).
        secret_key: Merchant secret key, possibly percent-encoded.

    Returns:
        Base64 of the lowercase hex HMAC-SHA256 digest.
    """
    digest_hex = hmac.new(
        derive_sign_key(secret_key),
        signing_message(payload).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return base64.b64encode(digest_hex.encode("ascii")).decode("ascii")


def verify(payload: object, signature: str, secret_key: str) -> bool:
    """
    Check ``signature`` against the payload.

    Comparison is constant-time; the result is the same as plain string
    equality.
    """
    if not isinstance(signature, str):
        return False
    expected = sign(payload, secret_key)
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


def verify_or_raise(payload: object, signature: str, secret_key: str) -> None:
    """
    Like :func:`verify`, but raise instead of returning ``False``.

    Raises:
        SignatureMismatchError: The signature does not match.
    """
    if not verify(payload, signature, secret_key):
        raise SignatureMismatchError("Signature does not match the canonical payload")
