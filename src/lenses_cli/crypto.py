"""Local password encryption for stored configuration contexts.

Passwords are encrypted with AES-256 in CFB mode. The key is the SHA-256
digest of the context host, the random IV is prepended to the ciphertext
and the result is URL-safe base64 encoded.
"""

from __future__ import annotations

import base64
import hashlib
import os
from typing import Protocol

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from lenses_cli.errors import EncryptionError

AES_BLOCK_SIZE = 16


class _HasCredentials(Protocol):
    host: str
    password: str


def _derive_key(key_base: str) -> bytes:
    return hashlib.sha256(key_base.encode("utf-8")).digest()


def encrypt_string(plain: str, key_base: str) -> str:
    iv = os.urandom(AES_BLOCK_SIZE)
    encryptor = Cipher(algorithms.AES(_derive_key(key_base)), modes.CFB(iv)).encryptor()
    encrypted = encryptor.update(plain.encode("utf-8")) + encryptor.finalize()
    return base64.urlsafe_b64encode(iv + encrypted).decode("ascii")


def decrypt_string(encrypted_raw: str, key_base: str) -> str:
    try:
        encrypted = base64.urlsafe_b64decode(encrypted_raw.encode("ascii"))
    except ValueError as exc:
        raise EncryptionError("encrypted value must be valid url-safe base64") from exc

    if len(encrypted) < AES_BLOCK_SIZE:
        raise EncryptionError(f"short cipher, min len: {AES_BLOCK_SIZE}")

    iv, payload = encrypted[:AES_BLOCK_SIZE], encrypted[AES_BLOCK_SIZE:]
    decryptor = Cipher(algorithms.AES(_derive_key(key_base)), modes.CFB(iv)).decryptor()
    decrypted = decryptor.update(payload) + decryptor.finalize()
    try:
        return decrypted.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EncryptionError("decrypted value is not valid text; was the host changed?") from exc


def encrypt_password(cfg: _HasCredentials) -> str:
    if not cfg.password:
        raise EncryptionError("empty password")
    return encrypt_string(cfg.password, cfg.host)


def decrypt_password(cfg: _HasCredentials) -> str:
    return decrypt_string(cfg.password, cfg.host)
