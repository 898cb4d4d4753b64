"""Password key derivation using PBKDF2-HMAC-SHA256."""

from __future__ import annotations

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from keyseal.crypto.secure_memory import SecureBuffer, wipe
from keyseal.errors import KeyDerivationFailure

# Fixed for every container ever written: the parameters are not stored in
# the container, so changing any of them breaks existing files.
PBKDF2_ITERATIONS = 100_000
DERIVED_KEY_LEN = 32
SALT_LEN = 16

Password = str | bytes | bytearray | memoryview


def _check_salt(salt: bytes | bytearray | memoryview) -> None:
    if len(memoryview(salt)) != SALT_LEN:
        raise ValueError(f"Salt must be {SALT_LEN} bytes long, got {len(memoryview(salt))}")


def _pbkdf2(secret: bytes | bytearray | memoryview, salt: bytes | bytearray | memoryview) -> bytes:
    try:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=DERIVED_KEY_LEN,
            salt=bytes(salt),
            iterations=PBKDF2_ITERATIONS,
        )
        return kdf.derive(secret)
    except (UnsupportedAlgorithm, TypeError, ValueError) as exc:
        raise KeyDerivationFailure("PBKDF2 key derivation failed") from exc


def derive_key_into(password: Password, salt: bytes | bytearray | memoryview, out: bytearray) -> None:
    """Derive the 32-byte key for ``(password, salt)`` into ``out``.

    ``str`` passwords are UTF-8 encoded into a scratch buffer that is zeroed
    before returning.  Bytes-like passwords are used as given and left
    untouched; they belong to the caller.
    """

    _check_salt(salt)
    if len(out) != DERIVED_KEY_LEN:
        raise ValueError(f"Output buffer must be {DERIVED_KEY_LEN} bytes long, got {len(out)}")

    if isinstance(password, str):
        with SecureBuffer.copy_of(password.encode("utf-8")) as encoded:
            key = _pbkdf2(encoded, salt)
    elif isinstance(password, (bytes, bytearray, memoryview)):
        key = _pbkdf2(password, salt)
    else:
        raise TypeError(f"password must be str or bytes-like, got {type(password).__name__}")
    out[:] = key
    del key


def derive_key(password: Password, salt: bytes | bytearray | memoryview) -> bytes:
    """Derive a 256-bit key from ``password`` and ``salt``.

    Deterministic: the same inputs always produce the same key.
    """

    out = bytearray(DERIVED_KEY_LEN)
    try:
        derive_key_into(password, salt, out)
        return bytes(out)
    finally:
        wipe(out)
