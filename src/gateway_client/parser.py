"""
Gateway response parsing and classification.

No I/O occurs here; all functions are pure transformations of response
text/dicts to support easy unit testing.

Classification order (first match wins):
  1. status is not 2xx           → HttpError
  2. body is not a JSON object   → ParseError
  3. JSON reports status != ok   → GatewayRejectedError  (when required)
  4. otherwise                   → parsed dict, with ``decrypted_data``
                                   added when ``encrypted_data`` is present
"""

from __future__ import annotations

import json

from src.auth.cipher import decrypt_object
from src.auth.errors import AuthError

from .credentials import Credential
from .errors import GatewayRejectedError, HttpError, ParseError
from .transport import TransportResponse

SUCCESS_STATUSES = frozenset({"success", "ok", "true", "1"})


def parse_json_body(body_text: str) -> dict:
    """
    Decode a response body as a JSON object.

    Raises:
        ParseError: Body is empty, not JSON, or not a JSON object.
    """
    try:
        parsed = json.loads(body_text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ParseError(
            f"Failed to parse response JSON: {exc}", body_text=body_text or ""
        ) from exc

    if not isinstance(parsed, dict):
        raise ParseError(
            f"Expected a JSON object, got {type(parsed).__name__}", body_text=body_text
        )
    return parsed


def extract_message(result: dict) -> str:
    """Best human-readable message from a gateway response."""
    for key in ("message", "msg", "error", "status"):
        value = result.get(key)
        if value:
            return str(value)
    return json.dumps(result, ensure_ascii=False)[:200]


def is_success_status(result: dict) -> bool:
    """Whether the ``status`` field reports success (missing counts as no)."""
    status = result.get("status")
    if isinstance(status, bool):
        return status
    return str(status).strip().lower() in SUCCESS_STATUSES


def decrypt_response_data(result: dict, credential: Credential) -> dict:
    """
    Decrypt ``encrypted_data`` into ``decrypted_data`` when present.

    A decryption failure does not fail the request: it is recorded in
    ``decrypt_error`` and the rest of the response is kept.

    Returns:
        A new dict; ``result`` is not modified.
    """
    encrypted = result.get("encrypted_data")
    if not encrypted or not isinstance(encrypted, str):
        return dict(result)

    enriched = dict(result)
    try:
        enriched["decrypted_data"] = decrypt_object(
            encrypted, credential.api_key, credential.secret_key
        )
    except AuthError as exc:
        enriched["decrypt_error"] = f"{type(exc).__name__}: {exc}"
    return enriched


def parse_gateway_response(
    response: TransportResponse,
    credential: Credential | None = None,
    require_success_status: bool = False,
) -> dict:
    """
    Turn a transport response into a result dict or a classified error.

    Args:
        response: Raw transport response.
        credential: Used to decrypt ``encrypted_data``; skipped when ``None``.
        require_success_status: Treat a JSON ``status`` other than success
            as a rejection (deposit/payout endpoints report status this way).

    Returns:
        Parsed response dict.

    Raises:
        ParseError: Body is not a JSON object.
        HttpError: Non-2xx HTTP status.
        GatewayRejectedError: ``require_success_status`` and status not success.
    """
    if not response.ok:
        try:
            detail = extract_message(parse_json_body(response.body_text))
        except ParseError:
            detail = (response.body_text or "").strip()[:200]
        raise HttpError(
            response.status,
            response.body_text,
            message=f"HTTP {response.status} - {detail}",
        )

    result = parse_json_body(response.body_text)

    if require_success_status and not is_success_status(result):
        raise GatewayRejectedError(
            f"Gateway rejected request: {extract_message(result)}", response=result
        )

    if credential is not None:
        result = decrypt_response_data(result, credential)
    return result


def parse_callback_response(response: TransportResponse) -> dict:
    """
    Classify the gateway's answer to a simulated callback notification.

    The notification endpoints reply with JSON or with plain text.  A JSON
    object is returned as-is; any other body is wrapped as
    ``{"body_text": ...}``.  There is no ``status`` check.

    Raises:
        HttpError: Non-2xx HTTP status.
    """
    if not response.ok:
        detail = (response.body_text or "").strip()[:200]
        raise HttpError(
            response.status,
            response.body_text,
            message=f"Callback failed: HTTP {response.status} - {detail}",
        )
    try:
        return parse_json_body(response.body_text)
    except ParseError:
        return {"body_text": response.body_text or ""}


def extract_customer_id(result: dict) -> str:
    """
    Pull the new user id out of a create-customer response.

    Raises:
        GatewayRejectedError: ``success`` is not true or ``data.user_id`` is missing.
    """
    data = result.get("data")
    user_id = data.get("user_id") if isinstance(data, dict) else None
    if result.get("success") is not True or user_id in (None, ""):
        raise GatewayRejectedError(
            f"Customer creation failed: {extract_message(result)}", response=result
        )
    return str(user_id)
