"""
Exception types raised by the request authentication layer.

None of these are retried by the batch executor: a payload that cannot be
canonicalized, a ciphertext that cannot be decrypted, or a signature that
does not verify will fail the same way on every attempt.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for canonicalization, key, cipher, and signature failures."""

    category = "auth_error"


class SerializationError(AuthError):
    """Payload contains a value that has no canonical JSON form."""

    category = "serialization"


class KeyDerivationError(AuthError):
    """API key or secret key is missing, so no key material can be derived."""

    category = "key_derivation"


class DecryptionError(AuthError):
    """
    Ciphertext could not be turned back into text.

    Raised for bad percent/base64 encoding, a length that is not a whole
    number of AES blocks, invalid PKCS7 padding, or plaintext bytes that are
    not valid UTF-8.
    """

    category = "decryption"


class MalformedPayloadError(AuthError):
    """Decryption succeeded but the plaintext is not the expected JSON."""

    category = "malformed_payload"

    def __init__(self, message: str, plain_text: str | None = None) -> None:
        super().__init__(message)
        self.plain_text = plain_text


class SignatureMismatchError(AuthError):
    """Signature does not match the canonical, normalized payload."""

    category = "signature_mismatch"
