"""Operating-system backed random source for salts and nonces."""

from __future__ import annotations

import os

from keyseal.errors import EntropySourceFailure


class OsRandomSource:
    """Cryptographically secure bytes from ``os.urandom``.

    The object holds no state, so a single instance may be shared between
    threads.  A failing entropy source is reported, never retried.
    """

    def token(self, length: int) -> bytes:
        """Return ``length`` fresh random bytes."""

        if length < 0:
            raise ValueError("length must be non-negative")
        try:
            data = os.urandom(length)
        except (OSError, NotImplementedError) as exc:
            raise EntropySourceFailure("Operating system random source failed") from exc
        if len(data) != length:
            raise EntropySourceFailure(
                f"Operating system random source returned {len(data)} of {length} bytes",
            )
        return data

    def fill(self, buffer: bytearray | memoryview) -> None:
        """Fill a writable buffer completely with random bytes."""

        view = memoryview(buffer).cast("B")
        if view.readonly:
            raise TypeError("buffer must be writable")
        view[:] = self.token(view.nbytes)


_DEFAULT_SOURCE = OsRandomSource()


def default_random_source() -> OsRandomSource:
    """Return the process-wide random source."""

    return _DEFAULT_SOURCE


def random_bytes(length: int) -> bytes:
    return _DEFAULT_SOURCE.token(length)
