"""Scoped buffers for passwords, derived keys and recovered secrets.

Every sensitive value the container core handles lives in a
:class:`SecureBuffer` for the duration of one call.  Leaving the ``with``
block (normally or through an exception) overwrites the buffer with zeros
and releases the page lock, if one could be taken.

Python ``bytes`` objects are immutable and cannot be wiped; code in this
package copies such values into a buffer as early as possible and drops the
original reference.
"""
from __future__ import annotations

import ctypes
import ctypes.util
import logging
import platform
from types import TracebackType

logger = logging.getLogger(__name__)

_libc: ctypes.CDLL | None = None

if platform.system() != "Windows":
    try:
        _libc_name = ctypes.util.find_library("c")
        if _libc_name:
            _libc = ctypes.CDLL(_libc_name, use_errno=True)
    except OSError:
        _libc = None


def mlock_available() -> bool:
    """Return True if page locking can be attempted on this platform."""
    return _libc is not None


def wipe(data: bytearray | memoryview | None) -> None:
    """Overwrite a mutable buffer with zeros in place.

    Read-only views and ``None`` are ignored.
    """
    if data is None:
        return
    view = data if isinstance(data, memoryview) else memoryview(data)
    if view.readonly or view.nbytes == 0:
        return
    view.cast("B")[:] = bytes(view.nbytes)


class SecureBuffer:
    """Fixed-size bytearray that is zeroed when its scope ends.

    Usage::

        with SecureBuffer(32) as key:
            derive_key_into(password, salt, key)
            cipher = AESGCM(key)
        # key is all zeros here
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("SecureBuffer size must be non-negative")
        self._buffer = bytearray(size)
        self._locked = False
        self._closed = False
        if size:
            self._lock()

    @classmethod
    def copy_of(cls, data: bytes | bytearray | memoryview) -> SecureBuffer:
        """Return a new buffer holding a copy of ``data``."""
        view = memoryview(data)
        buf = cls(view.nbytes)
        buf._buffer[:] = view.cast("B")
        return buf

    def _address(self) -> int:
        holder = (ctypes.c_char * len(self._buffer)).from_buffer(self._buffer)
        return ctypes.addressof(holder)

    def _lock(self) -> None:
        if _libc is None:
            return
        try:
            if _libc.mlock(ctypes.c_void_p(self._address()), ctypes.c_size_t(len(self._buffer))) == 0:
                self._locked = True
            else:
                logger.debug("mlock failed (errno=%d), buffer stays unlocked", ctypes.get_errno())
        except (AttributeError, OSError, TypeError):
            logger.debug("mlock unavailable, buffer stays unlocked")

    def _unlock(self) -> None:
        if not self._locked or _libc is None:
            return
        try:
            _libc.munlock(ctypes.c_void_p(self._address()), ctypes.c_size_t(len(self._buffer)))
        except (AttributeError, OSError, TypeError):
            logger.debug("munlock failed")
        self._locked = False

    def __enter__(self) -> bytearray:
        return self._buffer

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._buffer)

    def close(self) -> None:
        """Zero the buffer and release the page lock. Safe to call twice."""
        wipe(self._buffer)
        self._unlock()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def buffer(self) -> bytearray:
        return self._buffer
