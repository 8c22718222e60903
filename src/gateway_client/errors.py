"""
Gateway client exceptions and error categorization.

Categories drive retry decisions: transient errors (network, HTTP, parse)
are retried with backoff; permanent errors (bad input, auth failures,
gateway rejections) end the task on the attempt that raised them.
"""

from __future__ import annotations

import asyncio

from src.auth.errors import AuthError


class GatewayError(Exception):
    """Base class for transport, response, and input-validation failures."""

    category = "gateway_error"


class NetworkError(GatewayError):
    """Connection failure or timeout before a response arrived."""

    category = "network"


class HttpError(GatewayError):
    """Gateway answered with a non-2xx status."""

    category = "http"

    def __init__(self, status: int, body_text: str = "", message: str | None = None) -> None:
        super().__init__(message or f"HTTP {status} - {body_text[:200]}")
        self.status = status
        self.body_text = body_text


class ParseError(GatewayError):
    """Response body is not valid JSON."""

    category = "parse"

    def __init__(self, message: str, body_text: str = "") -> None:
        super().__init__(message)
        self.body_text = body_text


class GatewayRejectedError(GatewayError):
    """Gateway returned valid JSON reporting a non-success status."""

    category = "gateway_rejected"

    def __init__(self, message: str, response: dict | None = None) -> None:
        super().__init__(message)
        self.response = response or {}


class ValidationError(GatewayError, ValueError):
    """Bad input detected before any network activity."""

    category = "validation"


class ErrorCategory:
    """
    Error category constants and classification for task failures.

    ``RETRIABLE`` categories get another attempt while attempts remain;
    everything in ``PERMANENT`` stops the task immediately.  Exceptions
    outside both hierarchies (``OTHER``) are treated as transient.
    """

    NETWORK = NetworkError.category
    TIMEOUT = "timeout"
    HTTP = HttpError.category
    PARSE = ParseError.category
    GATEWAY_REJECTED = GatewayRejectedError.category
    VALIDATION = ValidationError.category
    SERIALIZATION = "serialization"
    KEY_DERIVATION = "key_derivation"
    DECRYPTION = "decryption"
    MALFORMED_PAYLOAD = "malformed_payload"
    SIGNATURE_MISMATCH = "signature_mismatch"
    CANCELLED = "cancelled"
    OTHER = "other"

    RETRIABLE: frozenset[str] = frozenset({NETWORK, TIMEOUT, HTTP, PARSE, OTHER})
    PERMANENT: frozenset[str] = frozenset({
        GATEWAY_REJECTED,
        VALIDATION,
        SERIALIZATION,
        KEY_DERIVATION,
        DECRYPTION,
        MALFORMED_PAYLOAD,
        SIGNATURE_MISMATCH,
        CANCELLED,
    })

    @staticmethod
    def categorize(error: BaseException) -> str:
        """
        Map an exception to its category string.

        Args:
            error: Exception raised by a task attempt.

        Returns:
            One of the category constants on this class.
        """
        if isinstance(error, asyncio.CancelledError):
            return ErrorCategory.CANCELLED
        if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
            return ErrorCategory.TIMEOUT
        if isinstance(error, (GatewayError, AuthError)):
            return error.category
        return ErrorCategory.OTHER

    @staticmethod
    def is_retriable(category: str) -> bool:
        return category not in ErrorCategory.PERMANENT
