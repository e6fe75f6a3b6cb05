"""
Handoff payload encryption
--------------------------
The external verification service decrypts the `eData` query parameter with
the organization's shared secret. Its contract fixes the scheme:

  key        = SHA-256(shared secret)            (32 bytes, AES-256)
  iv         = 16 random bytes, fresh per call
  ciphertext = AES-256-CBC(key, iv, PKCS#7(plaintext))
  output     = base64(iv || ciphertext)

There is no MAC over the blob. The service does not accept one, so the
payload has confidentiality only; integrity rests on the callback lookup.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import os
from typing import Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from directdebit.core.errors import CryptoError

IV_SIZE = 16
BLOCK_BITS = 128

BytesLike = Union[bytes, str]


def _to_bytes(value: BytesLike) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def derive_key(shared_secret: BytesLike) -> bytes:
    """Length-normalizing hash of the shared secret (not a password KDF)."""
    secret = _to_bytes(shared_secret or b"")
    if not secret:
        raise CryptoError("shared secret is empty")
    return hashlib.sha256(secret).digest()


def _fresh_iv() -> bytes:
    try:
        iv = os.urandom(IV_SIZE)
    except (NotImplementedError, OSError) as e:
        raise CryptoError("secure random source unavailable") from e
    if len(iv) != IV_SIZE:
        raise CryptoError("secure random source returned a short read")
    return iv


def encrypt(plaintext: BytesLike, shared_secret: BytesLike) -> str:
    key = derive_key(shared_secret)
    iv = _fresh_iv()

    padder = padding.PKCS7(BLOCK_BITS).padder()
    padded = padder.update(_to_bytes(plaintext)) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return base64.b64encode(iv + ciphertext).decode("ascii")


def decrypt(blob: str, shared_secret: BytesLike) -> bytes:
    """
    Inverse of encrypt(). The service never needs this at runtime; it exists so
    an outbound payload can be inspected and the scheme verified against the
    receiver's expectations.
    """
    key = derive_key(shared_secret)
    try:
        raw = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CryptoError("payload is not valid base64") from e

    if len(raw) < IV_SIZE + BLOCK_BITS // 8 or (len(raw) - IV_SIZE) % (BLOCK_BITS // 8):
        raise CryptoError("payload is too short or not block aligned")

    iv, ciphertext = raw[:IV_SIZE], raw[IV_SIZE:]
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise CryptoError("payload padding is invalid") from e
