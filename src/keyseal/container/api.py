"""File-level helpers around the container core.

The core never touches the filesystem; this module reads and writes
containers, exported keys and metadata, refusing to replace existing files
unless asked to.
"""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from keyseal import __version__
from keyseal.config import KeySealConfig
from keyseal.container.core import protect, unprotect
from keyseal.crypto.kdf import Password
from keyseal.crypto.secure_memory import SecureBuffer, wipe
from keyseal.keys import armor_private_key, build_metadata, build_user_id, generate_key_pair

logger = logging.getLogger(__name__)

PRIVATE_FILE_MODE = 0o600
PUBLIC_FILE_MODE = 0o644
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
_UNSAFE_NAME_CHARS = (" ", "/", "\\", "\x00")


@dataclass(frozen=True)
class GeneratedKeyFiles:
    user_id: str
    public_path: Path
    private_path: Path
    metadata_path: Path
    generated_at: datetime


def _ensure_output(path: Path, overwrite: bool) -> None:
    if path.is_dir():
        raise IsADirectoryError(f"Output path is a directory: {path}")
    if path.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing file: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)


def _atomic_write(path: Path, data: bytes | bytearray, *, mode: int) -> None:
    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def write_container(path: os.PathLike[str] | str, blob: bytes, *, overwrite: bool = False) -> Path:
    target = Path(path)
    _ensure_output(target, overwrite)
    _atomic_write(target, blob, mode=PRIVATE_FILE_MODE)
    logger.debug("Wrote %d-byte container to %s", len(blob), target)
    return target


def read_container(path: os.PathLike[str] | str) -> bytes:
    source = Path(path)
    if not source.is_file():
        raise FileNotFoundError(f"Container not found: {source}")
    return source.read_bytes()


def protect_file(
    in_path: os.PathLike[str] | str,
    out_path: os.PathLike[str] | str,
    password: Password,
    *,
    overwrite: bool = False,
) -> Path:
    """Protect the contents of ``in_path`` and write the container to ``out_path``."""

    source = Path(in_path)
    target = Path(out_path)
    _ensure_output(target, overwrite)
    with SecureBuffer.copy_of(source.read_bytes()) as secret:
        blob = protect(secret, password)
    return write_container(target, blob, overwrite=overwrite)


def unprotect_file(container_path: os.PathLike[str] | str, password: Password) -> bytearray:
    """Return the recovered secret; the caller should wipe it when done."""

    return unprotect(read_container(container_path), password)


def write_secret(path: os.PathLike[str] | str, secret: bytes | bytearray, *, overwrite: bool = False) -> Path:
    target = Path(path)
    _ensure_output(target, overwrite)
    _atomic_write(target, secret, mode=PRIVATE_FILE_MODE)
    return target


def export_private_key(
    container_path: os.PathLike[str] | str,
    password: Password,
    out_path: os.PathLike[str] | str,
    *,
    overwrite: bool = False,
) -> Path:
    """Recover a protected private key and save it PEM-armored, unencrypted."""

    target = Path(out_path)
    _ensure_output(target, overwrite)
    recovered = unprotect_file(container_path, password)
    try:
        armored = armor_private_key(recovered)
    finally:
        wipe(recovered)
    with SecureBuffer.copy_of(armored.encode("ascii")) as pem:
        del armored
        return write_secret(target, pem, overwrite=overwrite)


def _key_file_name(name: str, kind: str, now: datetime, suffix: str) -> str:
    safe = name.strip()
    for char in _UNSAFE_NAME_CHARS:
        safe = safe.replace(char, "_")
    return f"{safe}_{kind}_{now.strftime(TIMESTAMP_FORMAT)}{suffix}"


def generate_protected_key(
    name: str,
    email: str,
    password: Password,
    out_dir: os.PathLike[str] | str,
    *,
    config: KeySealConfig | None = None,
    overwrite: bool = False,
    now: datetime | None = None,
) -> GeneratedKeyFiles:
    """Generate a key pair and write public key, protected private key and metadata.

    All three destinations are checked before anything is written.
    """

    settings = config or KeySealConfig()
    moment = now or datetime.now().astimezone()
    user_id = build_user_id(name, email)

    directory = Path(out_dir)
    public_path = directory / _key_file_name(name, "public", moment, ".pem")
    private_path = directory / _key_file_name(name, "private", moment, ".bin")
    metadata_path = directory / _key_file_name(name, "public", moment, ".json")
    for target in (public_path, private_path, metadata_path):
        _ensure_output(target, overwrite)

    pair = generate_key_pair()
    public_pem = pair.public_pem
    with SecureBuffer.copy_of(pair.private_der) as private_der:
        del pair
        blob = protect(private_der, password)

    write_container(private_path, blob, overwrite=overwrite)
    _atomic_write(public_path, public_pem, mode=PUBLIC_FILE_MODE)

    metadata = build_metadata(
        name.strip(),
        user_id,
        tool_version=__version__,
        notes=settings.notes,
        now=moment,
    )
    _atomic_write(metadata_path, metadata.to_json().encode("utf-8"), mode=PUBLIC_FILE_MODE)
    logger.info("Generated %s key for %s", metadata.key_type, user_id)

    return GeneratedKeyFiles(
        user_id=user_id,
        public_path=public_path,
        private_path=private_path,
        metadata_path=metadata_path,
        generated_at=moment,
    )
