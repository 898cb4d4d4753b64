"""AES-256-GCM wrapper used by the container core."""

from __future__ import annotations

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from keyseal.errors import AuthenticationFailure

KEY_LEN = 32
NONCE_LEN = 12
TAG_LEN = 16


def _check_inputs(key: bytes | bytearray, nonce: bytes | bytearray) -> None:
    if len(key) != KEY_LEN:
        raise ValueError(f"Key must be {KEY_LEN} bytes, got {len(key)}")
    if len(nonce) != NONCE_LEN:
        raise ValueError(f"Nonce must be {NONCE_LEN} bytes, got {len(nonce)}")


class AesGcmEncryptor:
    """AES-GCM with the 16-byte tag appended to the ciphertext."""

    @staticmethod
    def encrypt(
        key: bytes | bytearray,
        nonce: bytes | bytearray,
        plaintext: bytes | bytearray | memoryview,
        aad: bytes = b"",
    ) -> bytes:
        _check_inputs(key, nonce)
        return AESGCM(key).encrypt(bytes(nonce), plaintext, aad or None)

    @staticmethod
    def decrypt(
        key: bytes | bytearray,
        nonce: bytes | bytearray,
        ciphertext: bytes | bytearray | memoryview,
        aad: bytes = b"",
    ) -> bytes:
        """Verify the tag and return the plaintext.

        Every verification failure raises the same :class:`AuthenticationFailure`.
        """
        _check_inputs(key, nonce)
        try:
            return AESGCM(key).decrypt(bytes(nonce), ciphertext, aad or None)
        except InvalidTag as exc:
            raise AuthenticationFailure() from exc
