"""Binary framing of protected containers.

Layout::

    offset 0..16   salt
    offset 16..28  nonce
    offset 28..    AES-GCM ciphertext with appended tag

There is no magic, version byte or length prefix: salt and nonce have fixed
sizes and the ciphertext is everything that remains.
"""

from __future__ import annotations

from dataclasses import dataclass

from keyseal.crypto.aead import NONCE_LEN, TAG_LEN
from keyseal.crypto.kdf import SALT_LEN
from keyseal.errors import ContainerFormatError

SALT_OFFSET = 0
NONCE_OFFSET = SALT_OFFSET + SALT_LEN
CIPHERTEXT_OFFSET = NONCE_OFFSET + NONCE_LEN
HEADER_LEN = CIPHERTEXT_OFFSET
MIN_CONTAINER_LEN = HEADER_LEN


@dataclass(frozen=True)
class ProtectedContainer:
    salt: bytes
    nonce: bytes
    ciphertext: bytes

    def to_bytes(self) -> bytes:
        return encode_container(self.salt, self.nonce, self.ciphertext)

    @classmethod
    def from_bytes(cls, blob: bytes | bytearray | memoryview) -> ProtectedContainer:
        return decode_container(blob)

    @property
    def plaintext_len(self) -> int:
        """Length of the protected secret, or -1 if the tag cannot fit."""
        return len(self.ciphertext) - TAG_LEN if len(self.ciphertext) >= TAG_LEN else -1


def encode_container(salt: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
    if len(salt) != SALT_LEN:
        raise ContainerFormatError(f"salt must be {SALT_LEN} bytes")
    if len(nonce) != NONCE_LEN:
        raise ContainerFormatError(f"nonce must be {NONCE_LEN} bytes")
    return b"".join((bytes(salt), bytes(nonce), bytes(ciphertext)))


def decode_container(blob: bytes | bytearray | memoryview) -> ProtectedContainer:
    """Split ``blob`` into salt, nonce and ciphertext.

    Only the length is checked; authenticity is verified during decryption.
    """

    data = bytes(blob)
    if len(data) < MIN_CONTAINER_LEN:
        raise ContainerFormatError(
            f"Container too short: {len(data)} bytes (minimum {MIN_CONTAINER_LEN})",
        )
    return ProtectedContainer(
        salt=data[SALT_OFFSET:NONCE_OFFSET],
        nonce=data[NONCE_OFFSET:CIPHERTEXT_OFFSET],
        ciphertext=data[CIPHERTEXT_OFFSET:],
    )


__all__ = [
    "CIPHERTEXT_OFFSET",
    "HEADER_LEN",
    "MIN_CONTAINER_LEN",
    "NONCE_LEN",
    "NONCE_OFFSET",
    "ProtectedContainer",
    "SALT_LEN",
    "SALT_OFFSET",
    "TAG_LEN",
    "decode_container",
    "encode_container",
]
