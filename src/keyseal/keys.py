"""ECC P-256 key pairs, PEM armor and the metadata sidecar."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from keyseal.errors import ArmorError

KEY_TYPE = "ECC P-256"
KEY_SIZE = 256


@dataclass(frozen=True)
class KeyPair:
    private_der: bytes
    public_pem: bytes


@dataclass(frozen=True)
class KeyMetadata:
    holder_name: str
    user_id: str
    generation_date: str
    key_type: str
    key_size: int
    tool_version: str
    notes: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2, ensure_ascii=False)


def generate_key_pair() -> KeyPair:
    """Generate a SECP256R1 key pair.

    The private half is returned as unencrypted PKCS#8 DER, ready to be
    passed to :func:`keyseal.container.core.protect`.
    """

    private_key = ec.generate_private_key(ec.SECP256R1())
    private_der = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return KeyPair(private_der=private_der, public_pem=public_pem)


def armor_private_key(private_der: bytes | bytearray) -> str:
    """Wrap PKCS#8 DER private key bytes in a PEM ``PRIVATE KEY`` block."""

    try:
        private_key = serialization.load_der_private_key(bytes(private_der), password=None)
    except (TypeError, ValueError, UnsupportedAlgorithm) as exc:
        raise ArmorError("Recovered data is not an unencrypted PKCS#8 private key") from exc
    pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return pem.decode("ascii")


def build_user_id(name: str, email: str) -> str:
    """Return an OpenPGP-style ``"Name <email>"`` user id."""

    name = name.strip()
    email = email.strip()
    if not name:
        raise ValueError("Name must not be empty")
    if "@" not in email or "." not in email:
        raise ValueError(f"Invalid email address: {email!r}")
    return f"{name} <{email}>"


def build_metadata(
    holder_name: str,
    user_id: str,
    *,
    tool_version: str,
    notes: str,
    now: datetime | None = None,
) -> KeyMetadata:
    moment = now or datetime.now().astimezone()
    return KeyMetadata(
        holder_name=holder_name,
        user_id=user_id,
        generation_date=moment.isoformat(),
        key_type=KEY_TYPE,
        key_size=KEY_SIZE,
        tool_version=tool_version,
        notes=notes,
    )
