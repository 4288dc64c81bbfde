"""Thread-safe fixed-size byte ring buffer used for audio samples."""

from __future__ import annotations

import threading


class RingBuffer:
    """A fixed-capacity FIFO of bytes; writes that do not fit are discarded."""

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"ring buffer size must be positive, got {size}")
        self._buf = bytearray(size)
        self._size = size
        self._r = 0
        self._w = 0
        self._full = False
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        """Total capacity in bytes."""
        return self._size

    def read(self, size: int) -> bytes:
        """Remove and return up to ``size`` bytes; empty when nothing is buffered."""
        if size <= 0:
            return b""
        with self._lock:
            if self._w == self._r and not self._full:
                return b""
            if self._w > self._r:
                n = min(self._w - self._r, size)
                out = bytes(self._buf[self._r:self._r + n])
            else:
                n = min(self._size - self._r + self._w, size)
                if self._r + n <= self._size:
                    out = bytes(self._buf[self._r:self._r + n])
                else:
                    head = bytes(self._buf[self._r:])
                    out = head + bytes(self._buf[:n - len(head)])
                self._full = False
            self._r = (self._r + n) % self._size
            return out

    def write(self, data: bytes) -> None:
        """Append ``data`` whole, or drop it if there is not enough room."""
        data = bytes(data)
        n = len(data)
        if n == 0:
            return
        with self._lock:
            if self._free() < n:
                return
            if self._w >= self._r:
                tail = self._size - self._w
                if tail >= n:
                    self._buf[self._w:self._w + n] = data
                    self._w += n
                else:
                    self._buf[self._w:] = data[:tail]
                    self._buf[:n - tail] = data[tail:]
                    self._w = n - tail
            else:
                self._buf[self._w:self._w + n] = data
                self._w += n
            if self._w == self._size:
                self._w = 0
            self._full = self._w == self._r

    def __len__(self) -> int:
        with self._lock:
            if self._w == self._r:
                return self._size if self._full else 0
            if self._w > self._r:
                return self._w - self._r
            return self._size - self._r + self._w

    def free(self) -> int:
        """Number of bytes that can still be written."""
        with self._lock:
            return self._free()

    def _free(self) -> int:
        if self._w == self._r:
            return 0 if self._full else self._size
        if self._w < self._r:
            return self._r - self._w
        return self._size - self._w + self._r

    def reset(self) -> None:
        """Discard everything buffered."""
        with self._lock:
            self._r = 0
            self._w = 0
            self._full = False