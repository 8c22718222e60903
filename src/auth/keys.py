"""
Key material derivation for the encrypted and signed gateway protocols.

Cipher keys
-----------
- key = SHA256(api_key), the raw 32-byte digest (AES-256 key)
- iv  = the first 16 characters of the lowercase hex SHA256(secret_key),
        taken as UTF-8 bytes (not the raw digest bytes)

The IV is static and derived from the secret, so every message encrypted
for a merchant reuses it.  Gateways decrypt with exactly this IV, so it
cannot change without breaking them.  A protocol without that constraint
should generate a random IV per message and send it with the ciphertext.

Signature key
-------------
The URL-decoded secret key, UTF-8 encoded, used directly as the HMAC key.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from urllib.parse import unquote

from .errors import KeyDerivationError

AES_KEY_BYTES = 32
AES_IV_BYTES = 16


@dataclass(frozen=True)
class CipherKeyMaterial:
    """AES-256-CBC key and IV for one merchant credential."""

    key: bytes
    iv: bytes

    def __repr__(self) -> str:
        return f"CipherKeyMaterial(key=<{len(self.key)} bytes>, iv=<{len(self.iv)} bytes>)"


def derive_cipher_keys(api_key: str, secret_key: str) -> CipherKeyMaterial:
    """
    Derive the AES key and IV from a merchant's API key and secret key.

    Args:
        api_key: Merchant API key.
        secret_key: Merchant secret key.

    Returns:
        :class:`CipherKeyMaterial` with a 32-byte key and 16-byte IV.

    Raises:
        KeyDerivationError: Either input is empty.
    """
    if not api_key:
        raise KeyDerivationError("API key is empty; cannot derive cipher key.")
    if not secret_key:
        raise KeyDerivationError("Secret key is empty; cannot derive IV.")

    key = hashlib.sha256(api_key.encode("utf-8")).digest()
    iv_hex = hashlib.sha256(secret_key.encode("utf-8")).hexdigest()
    iv = iv_hex[:AES_IV_BYTES].encode("utf-8")
    return CipherKeyMaterial(key=key, iv=iv)


def derive_sign_key(secret_key: str) -> bytes:
    """
    Return the HMAC key for a secret key.

    Args:
        secret_key: Merchant secret key, possibly percent-encoded.

    Returns:
        UTF-8 bytes of the percent-decoded secret key.

    Raises:
        KeyDerivationError: ``secret_key`` is empty.
    """
    if not secret_key:
        raise KeyDerivationError("Secret key is empty; cannot derive signing key.")
    return unquote(secret_key).encode("utf-8")
