"""In-memory key session for an encrypted database.

A session owns one derived key for its whole lifetime. The key is written
twice: once when the session is created from a freshly derived key and once
when ``disable()`` overwrites it with random bytes. Readers never see the
buffer itself; ``current_key()`` hands out a copy taken under the same lock
that ``disable()`` holds while scrubbing, so a codec call can never observe a
half-overwritten key.

Disabling is terminal. Resuming encryption means deriving a new key and
building a new session.
"""
from __future__ import annotations

import os
import threading
from typing import Optional


class KeyBuffer:
    """Mutable secret buffer that can be scrubbed in place."""

    __slots__ = ("_buf",)

    def __init__(self, key: bytes):
        self._buf = bytearray(key)

    def __len__(self) -> int:
        return len(self._buf)

    def copy(self) -> bytes:
        return bytes(self._buf)

    def zeroize(self) -> None:
        # slice assignment of equal length rewrites the existing allocation
        self._buf[:] = os.urandom(len(self._buf))


class KeySession:
    def __init__(self, key: bytes):
        if not key:
            raise ValueError("key must not be empty")
        self._key = KeyBuffer(key)
        self._disabled = False
        self._lock = threading.Lock()

    @property
    def disabled(self) -> bool:
        return self._disabled

    def current_key(self) -> Optional[bytes]:
        """Return a copy of the key, or None once the session is disabled."""
        with self._lock:
            if self._disabled:
                return None
            return self._key.copy()

    def disable(self) -> None:
        """Scrub the key and switch the session off for good."""
        with self._lock:
            if self._disabled:
                return
            self._key.zeroize()
            self._disabled = True
