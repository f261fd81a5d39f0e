"""Owned growable byte buffer used for header recovery and chunk splitting."""

from __future__ import annotations

from typing import Optional


class ByteBuffer:
    """
    Append-only byte buffer with prefix draining.

    An optional ``limit`` caps the length; appending past it raises
    ``ValueError`` so header buffers can never overshoot their required size.
    """

    def __init__(self, data: bytes = b"", limit: Optional[int] = None):
        if limit is not None and limit < 0:
            raise ValueError("limit must be non-negative")
        self._buf = bytearray()
        self.limit = limit
        if data:
            self.append(data)

    def __len__(self) -> int:
        return len(self._buf)

    def __bool__(self) -> bool:
        return bool(self._buf)

    def __repr__(self) -> str:
        return f"ByteBuffer(len={len(self._buf)}, limit={self.limit})"

    @property
    def remaining(self) -> Optional[int]:
        """Bytes that may still be appended, or None when unbounded."""
        if self.limit is None:
            return None
        return self.limit - len(self._buf)

    @property
    def is_full(self) -> bool:
        return self.limit is not None and len(self._buf) >= self.limit

    def append(self, data: bytes) -> None:
        if self.limit is not None and len(self._buf) + len(data) > self.limit:
            raise ValueError(
                f"append of {len(data)} bytes would exceed buffer limit {self.limit}"
            )
        self._buf += data

    def drain_prefix(self, n: int) -> bytes:
        """Remove and return the first ``n`` bytes (fewer if the buffer is shorter)."""
        if n < 0:
            raise ValueError("cannot drain a negative number of bytes")
        head = bytes(self._buf[:n])
        del self._buf[:n]
        return head

    def drain(self) -> bytes:
        """Remove and return everything."""
        return self.drain_prefix(len(self._buf))

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def wipe(self) -> None:
        """Zero the contents in place, then empty the buffer."""
        for i in range(len(self._buf)):
            self._buf[i] = 0
        del self._buf[:]
