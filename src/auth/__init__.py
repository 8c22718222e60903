"""
src/auth: request authentication for the merchant gateway test harness.

Module layout
-------------
canonical.py: deterministic JSON serialization, query-string joining
keys.py     : AES key/IV and HMAC key derivation from merchant credentials
cipher.py   : AES-256-CBC codec (encrypted v3 protocol)
signer.py   : HMAC-SHA256 signatures (signed v5 protocol)
errors.py   : AuthError hierarchy

Public interface
----------------
Serialize a payload:
    canonicalize(payload)

Encrypt / decrypt:
    encrypt(text, api_key, secret_key)
    decrypt(cipher_text, api_key, secret_key)
    encrypt_object(payload, api_key, secret_key)
    decrypt_object(cipher_text, api_key, secret_key)

Sign / verify:
    sign(payload, secret_key)
    verify(payload, signature, secret_key)
"""

from .canonical import canonical_bytes, canonicalize, to_query_string
from .cipher import decrypt, decrypt_object, encrypt, encrypt_object
from .errors import (
    AuthError,
    DecryptionError,
    KeyDerivationError,
    MalformedPayloadError,
    SerializationError,
    SignatureMismatchError,
)
from .keys import CipherKeyMaterial, derive_cipher_keys, derive_sign_key
from .signer import normalize_message, sign, verify, verify_or_raise

__all__ = [
    # Canonical form
    "canonicalize",
    "canonical_bytes",
    "to_query_string",
    # Keys
    "CipherKeyMaterial",
    "derive_cipher_keys",
    "derive_sign_key",
    # Cipher
    "encrypt",
    "decrypt",
    "encrypt_object",
    "decrypt_object",
    # Signatures
    "normalize_message",
    "sign",
    "verify",
    "verify_or_raise",
    # Errors
    "AuthError",
    "SerializationError",
    "KeyDerivationError",
    "DecryptionError",
    "MalformedPayloadError",
    "SignatureMismatchError",
]
