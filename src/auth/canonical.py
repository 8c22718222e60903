"""
Canonical JSON serialization of request payloads.

The canonical form is the exact string that gets hashed, signed, or
encrypted, so the signer and the gateway must produce it byte for byte.
No I/O occurs here; every function is a pure transformation.

Rules
-----
- Object keys are sorted by code point (the same order as sorting their
  UTF-8 bytes) at every nesting depth.
- No whitespace between tokens.
- Arrays keep their element order; only object keys are reordered.
- Non-ASCII characters are written verbatim (escaping happens later, in
  :func:`src.auth.signer.normalize_message`).
- Floats are written the way ``JSON.stringify`` writes them: integral
  values below 1e21 lose their fractional part (``100.0`` -> ``100``),
  exponents have no leading zeros (``1e+21``, ``1e-7``), and values between
  1e-7 and 1e-4 are written in plain decimal (``0.00001``).
- Self-referencing or excessively deep payloads raise ``SerializationError``.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from decimal import Decimal

from .errors import SerializationError

# JSON.stringify prints integral numbers in plain digits below this bound
_PLAIN_INTEGER_LIMIT = 1e21


def _float_text(value: float) -> str:
    """Shortest round-trip text of a finite float, in JSON.stringify notation."""
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, exp = text.split("e")
    exponent = int(exp)
    if -7 < exponent < 21:
        # repr switches to exponent notation below 1e-4; JSON.stringify only below 1e-6
        sign = "-" if mantissa.startswith("-") else ""
        digits = mantissa.lstrip("-").replace(".", "")
        return f"{sign}0.{'0' * (-exponent - 1)}{digits}"
    return f"{mantissa}e{'+' if exponent > 0 else '-'}{abs(exponent)}"


def _encode_number(value: int | float | Decimal) -> str:
    """Return the JSON literal for a numeric scalar."""
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise SerializationError(f"Non-finite Decimal has no JSON form: {value}")
        # 'f' avoids exponent notation such as 1E+2
        return format(value, "f")

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise SerializationError(f"Non-finite float has no JSON form: {value}")
        if value.is_integer() and abs(value) < _PLAIN_INTEGER_LIMIT:
            return str(int(value))
        return _float_text(value)

    return str(value)


def _encode(value: object, active: set[int]) -> str:
    if value is None:
        return "null"

    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, (int, float, Decimal)):
        return _encode_number(value)

    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)

    if isinstance(value, (Mapping, list, tuple)):
        # ids of the containers on the current path; shared siblings are fine
        marker = id(value)
        if marker in active:
            raise SerializationError(
                f"Circular reference in payload ({type(value).__name__} contains itself)"
            )
        active.add(marker)
        try:
            return _encode_container(value, active)
        finally:
            active.discard(marker)

    raise SerializationError(
        f"Unsupported value type for canonical JSON: {type(value).__name__}"
    )


def _encode_container(value: Mapping | list | tuple, active: set[int]) -> str:
    if isinstance(value, Mapping):
        for key in value:
            if not isinstance(key, str):
                raise SerializationError(
                    f"Object keys must be strings; got {type(key).__name__} {key!r}"
                )
        members = (
            f"{json.dumps(key, ensure_ascii=False)}:{_encode(value[key], active)}"
            for key in sorted(value)
        )
        return "{" + ",".join(members) + "}"

    return "[" + ",".join(_encode(item, active) for item in value) + "]"


def canonicalize(value: object) -> str:
    """
    Serialize ``value`` into its canonical JSON string.

    Args:
        value: A JSON-compatible value.  Mappings must have string keys;
               lists and tuples are emitted as arrays in their given order.

    Returns:
        Canonical JSON text.

    Raises:
        SerializationError: ``value`` (or something nested in it) is not
            JSON-compatible, a mapping key is not a string, a number is
            NaN/infinite, a container contains itself, or nesting exceeds
            the interpreter's recursion limit.
    """
    try:
        return _encode(value, set())
    except RecursionError as exc:
        raise SerializationError("Payload is nested too deeply to canonicalize") from exc


def canonical_bytes(value: object) -> bytes:
    """Return :func:`canonicalize` output encoded as UTF-8."""
    return canonicalize(value).encode("utf-8")


def to_query_string(fields: Mapping[str, object]) -> str:
    """
    Join fields as ``key=value&key=value`` in the mapping's own order.

    This is the plaintext format of the encrypted (v3) deposit and UTR
    endpoints.  Values are inserted raw, without URL escaping, because the
    whole string is encrypted before it leaves the process.

    Args:
        fields: Ordered mapping of field name to scalar value.

    Returns:
        Query-string style text.
    """
    parts: list[str] = []
    for key, value in fields.items():
        if isinstance(value, bool):
            text = "true" if value else "false"
        elif isinstance(value, (int, float, Decimal)):
            text = _encode_number(value)
        elif value is None:
            text = ""
        else:
            text = str(value)
        parts.append(f"{key}={text}")
    return "&".join(parts)
