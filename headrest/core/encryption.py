"""AES-256-GCM helpers for credentials stored alongside store connections.

Tokens have the form ``v1:<salt>:<nonce>:<ciphertext>`` (urlsafe base64 parts).
The data key is derived from ENCRYPTION_KEY and the per-token salt with
HKDF-SHA256. Anything that does not authenticate raises DecryptionError.
"""
from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from headrest.config import settings
from headrest.core.exceptions import ConfigurationError, DecryptionError

TOKEN_VERSION = "v1"
SALT_BYTES = 16
NONCE_BYTES = 12
KEY_INFO = b"headrest-credentials"


def _master_key(master_key: str | None) -> bytes:
    value = master_key if master_key is not None else settings.encryption_key.get_secret_value()
    if not value:
        raise ConfigurationError("ENCRYPTION_KEY is not configured", missing=["ENCRYPTION_KEY"])
    return value.encode("utf-8")


def _derive_key(master: bytes, salt: bytes) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=salt, info=KEY_INFO).derive(master)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")


def _b64decode(part: str) -> bytes:
    return base64.urlsafe_b64decode(part.encode("ascii"))


def encrypt(plaintext: str, master_key: str | None = None) -> str:
    salt = os.urandom(SALT_BYTES)
    nonce = os.urandom(NONCE_BYTES)
    key = _derive_key(_master_key(master_key), salt)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), TOKEN_VERSION.encode("ascii"))
    return ":".join([TOKEN_VERSION, _b64encode(salt), _b64encode(nonce), _b64encode(ciphertext)])


def decrypt(token: str | None, master_key: str | None = None) -> str:
    """Decrypt a token produced by ``encrypt``; empty input yields an empty string."""
    if token is None or not token.strip():
        return ""

    parts = token.strip().split(":")
    if len(parts) != 4 or parts[0] != TOKEN_VERSION:
        raise DecryptionError("Unrecognised ciphertext format")

    try:
        salt, nonce, ciphertext = (_b64decode(part) for part in parts[1:])
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError("Ciphertext is not valid base64") from exc
    if len(salt) != SALT_BYTES or len(nonce) != NONCE_BYTES:
        raise DecryptionError("Ciphertext header has the wrong length")

    key = _derive_key(_master_key(master_key), salt)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, TOKEN_VERSION.encode("ascii"))
    except InvalidTag as exc:
        raise DecryptionError("Ciphertext failed authentication") from exc
    return plaintext.decode("utf-8")
