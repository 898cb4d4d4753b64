from __future__ import annotations

from pathlib import Path

import keyseal.container as container_api
from keyseal.container import (
    ProtectedContainer,
    decode_container,
    protect,
    protect_file,
    unprotect,
    unprotect_file,
)


def test_public_names_resolve() -> None:
    for name in container_api.__all__:
        assert hasattr(container_api, name), name


def test_public_round_trip(tmp_path: Path) -> None:
    blob = protect(b"top secret", "pw")
    assert isinstance(decode_container(blob), ProtectedContainer)
    assert unprotect(blob, "pw") == b"top secret"

    source = tmp_path / "secret.txt"
    source.write_text("top secret", encoding="utf-8")
    protect_file(source, tmp_path / "secret.bin", "pw")
    assert unprotect_file(tmp_path / "secret.bin", "pw").decode("utf-8") == "top secret"
