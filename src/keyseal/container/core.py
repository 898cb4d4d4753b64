"""Password protection of secret key material.

``protect`` turns a secret and a password into a self-contained blob
(salt, nonce, AES-GCM ciphertext); ``unprotect`` reverses it.  Both are pure
functions of their arguments apart from the random salt and nonce drawn by
``protect``.  The derived key only ever lives in a :class:`SecureBuffer`
and is zeroed on every exit path.
"""
from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Protocol

from keyseal.container.format import decode_container, encode_container
from keyseal.crypto.aead import NONCE_LEN, AesGcmEncryptor
from keyseal.crypto.kdf import DERIVED_KEY_LEN, SALT_LEN, Password, derive_key_into
from keyseal.crypto.rng import default_random_source
from keyseal.crypto.secure_memory import SecureBuffer
from keyseal.errors import AuthenticationFailure

logger = logging.getLogger(__name__)

SecretBytes = bytes | bytearray | memoryview


class RandomSource(Protocol):
    def token(self, length: int) -> bytes: ...


class AeadCipher(Protocol):
    def encrypt(self, key: bytearray, nonce: bytes, plaintext: SecretBytes, aad: bytes = b"") -> bytes: ...

    def decrypt(self, key: bytearray, nonce: bytes, ciphertext: SecretBytes, aad: bytes = b"") -> bytes: ...


def _require_bytes_like(value: object, name: str) -> None:
    if isinstance(value, str) or not isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError(f"{name} must be bytes-like, got {type(value).__name__}")


class ProtectionService:
    """Orchestrates key derivation, AES-GCM and container framing."""

    def __init__(
        self,
        random_source: RandomSource | None = None,
        cipher: AeadCipher | None = None,
    ) -> None:
        self._random: RandomSource = random_source or default_random_source()
        self._cipher: AeadCipher = cipher or AesGcmEncryptor()

    def protect(self, secret: SecretBytes, password: Password) -> bytes:
        """Encrypt ``secret`` under ``password`` and return the container blob."""

        _require_bytes_like(secret, "secret")
        with ExitStack() as stack:
            key = stack.enter_context(SecureBuffer(DERIVED_KEY_LEN))
            salt = self._random.token(SALT_LEN)
            derive_key_into(password, salt, key)
            nonce = self._random.token(NONCE_LEN)
            ciphertext = self._cipher.encrypt(key, nonce, secret)

        blob = encode_container(salt, nonce, ciphertext)
        logger.debug("Protected %d-byte secret into %d-byte container", len(memoryview(secret)), len(blob))
        return blob

    def unprotect(self, container: SecretBytes, password: Password) -> bytearray:
        """Recover the secret from ``container``.

        Raises :class:`~keyseal.errors.ContainerFormatError` before any key
        derivation when the blob is too short, and
        :class:`~keyseal.errors.AuthenticationFailure` when the password is
        wrong or the blob was altered.  The caller owns the returned buffer
        and should wipe it when done.
        """

        _require_bytes_like(container, "container")
        parsed = decode_container(container)
        with SecureBuffer(DERIVED_KEY_LEN) as key:
            derive_key_into(password, parsed.salt, key)
            try:
                plaintext = self._cipher.decrypt(key, parsed.nonce, parsed.ciphertext)
            except AuthenticationFailure:
                logger.debug("Container authentication failed")
                raise

        recovered = bytearray(plaintext)
        del plaintext
        logger.debug("Recovered %d-byte secret", len(recovered))
        return recovered


_DEFAULT_SERVICE = ProtectionService()


def protect(secret: SecretBytes, password: Password, *, random_source: RandomSource | None = None) -> bytes:
    service = _DEFAULT_SERVICE if random_source is None else ProtectionService(random_source)
    return service.protect(secret, password)


def unprotect(container: SecretBytes, password: Password) -> bytearray:
    return _DEFAULT_SERVICE.unprotect(container, password)


__all__ = [
    "AeadCipher",
    "ProtectionService",
    "RandomSource",
    "protect",
    "unprotect",
]
