"""
AES-256-CBC codec for the encrypted (v3) gateway protocol.

Wire format: ``percent_encode(base64(AES-CBC(PKCS7(plain_text))))``.
Percent-encoding follows ``encodeURIComponent``: everything except
``A-Z a-z 0-9 - _ . ! ~ * ' ( )`` is escaped, so ``+``, ``/`` and ``=``
from the base64 alphabet become ``%2B``, ``%2F`` and ``%3D``.
"""

from __future__ import annotations

import base64
import binascii
import json
from urllib.parse import quote, unquote

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .canonical import canonicalize
from .errors import DecryptionError, MalformedPayloadError
from .keys import derive_cipher_keys

URI_COMPONENT_SAFE = "-_.!~*'()"
AES_BLOCK_BITS = 128


def _aes_cbc(api_key: str, secret_key: str) -> Cipher:
    material = derive_cipher_keys(api_key, secret_key)
    return Cipher(algorithms.AES(material.key), modes.CBC(material.iv))


def encrypt(plain_text: str, api_key: str, secret_key: str) -> str:
    """
    Encrypt a string for transport.

    The codec does not interpret ``plain_text``; callers pass either a
    query string or canonical JSON.

    Args:
        plain_text: Text to encrypt.
        api_key: Merchant API key (derives the AES key).
        secret_key: Merchant secret key (derives the IV).

    Returns:
        Percent-encoded base64 ciphertext.
    """
    padder = padding.PKCS7(AES_BLOCK_BITS).padder()
    padded = padder.update(plain_text.encode("utf-8")) + padder.finalize()

    encryptor = _aes_cbc(api_key, secret_key).encryptor()
    cipher_bytes = encryptor.update(padded) + encryptor.finalize()

    encoded = base64.b64encode(cipher_bytes).decode("ascii")
    return quote(encoded, safe=URI_COMPONENT_SAFE)


def decrypt(cipher_text: str, api_key: str, secret_key: str) -> str:
    """
    Reverse :func:`encrypt`.

    Args:
        cipher_text: Percent-encoded base64 ciphertext.
        api_key: Merchant API key.
        secret_key: Merchant secret key.

    Returns:
        The decrypted text.

    Raises:
        DecryptionError: Encoding, block length, padding, or UTF-8 decoding
            is invalid.
    """
    try:
        cipher_bytes = base64.b64decode(unquote(cipher_text), validate=True)
    except (ValueError, binascii.Error) as exc:
        raise DecryptionError(f"Ciphertext is not valid base64: {exc}") from exc

    if not cipher_bytes or len(cipher_bytes) % (AES_BLOCK_BITS // 8):
        raise DecryptionError(
            f"Ciphertext length {len(cipher_bytes)} is not a whole number of AES blocks"
        )

    decryptor = _aes_cbc(api_key, secret_key).decryptor()
    padded = decryptor.update(cipher_bytes) + decryptor.finalize()

    unpadder = padding.PKCS7(AES_BLOCK_BITS).unpadder()
    try:
        plain_bytes = unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise DecryptionError("Invalid PKCS7 padding (wrong key or corrupt data)") from exc

    try:
        return plain_bytes.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecryptionError("Decrypted bytes are not valid UTF-8") from exc


def encrypt_object(payload: object, api_key: str, secret_key: str) -> str:
    """Encrypt the canonical JSON form of ``payload``."""
    return encrypt(canonicalize(payload), api_key, secret_key)


def decrypt_object(cipher_text: str, api_key: str, secret_key: str) -> object:
    """
    Decrypt ciphertext and parse the plaintext as JSON.

    Raises:
        DecryptionError: The ciphertext itself is invalid.
        MalformedPayloadError: Decryption worked but the text is not JSON.
    """
    plain_text = decrypt(cipher_text, api_key, secret_key)
    try:
        return json.loads(plain_text)
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError(
            f"Decrypted payload is not valid JSON: {exc}", plain_text=plain_text
        ) from exc
