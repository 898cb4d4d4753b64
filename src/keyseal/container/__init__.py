"""Public container API re-exported for external users.

The objects listed in ``__all__`` form the supported public surface for
Python consumers. Everything else in :mod:`keyseal.container` is considered
internal and may change without notice.
"""
from __future__ import annotations

from keyseal.container.api import (
    GeneratedKeyFiles,
    export_private_key,
    generate_protected_key,
    protect_file,
    read_container,
    unprotect_file,
    write_container,
)
from keyseal.container.core import ProtectionService, protect, unprotect
from keyseal.container.format import (
    MIN_CONTAINER_LEN,
    ProtectedContainer,
    decode_container,
    encode_container,
)

__all__ = [
    "GeneratedKeyFiles",
    "MIN_CONTAINER_LEN",
    "ProtectedContainer",
    "ProtectionService",
    "decode_container",
    "encode_container",
    "export_private_key",
    "generate_protected_key",
    "protect",
    "protect_file",
    "read_container",
    "unprotect",
    "unprotect_file",
    "write_container",
]
