from __future__ import annotations

import threading
from dataclasses import dataclass

import numpy as np


@dataclass(slots=True)
class RingBuffer:
    """Fixed-capacity byte FIFO that overwrites the oldest bytes on overflow.

    One producer and one consumer may use it concurrently. Writers never wait
    on readers: when there is not enough free space the oldest unread bytes are
    discarded to make room.
    """

    capacity: int
    _buffer: np.ndarray
    _read_pos: int
    _length: int
    _lock: threading.Lock

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self.capacity = capacity
        self._buffer = np.zeros((capacity,), dtype=np.uint8)
        self._read_pos = 0
        self._length = 0
        self._lock = threading.Lock()

    def write(self, data: bytes | bytearray | memoryview | None) -> int:
        if not data:
            return 0

        chunk = np.frombuffer(data, dtype=np.uint8)
        if chunk.size > self.capacity:
            chunk = chunk[-self.capacity :]

        with self._lock:
            overflow = chunk.size - (self.capacity - self._length)
            if overflow > 0:
                self._discard(overflow)

            write_pos = (self._read_pos + self._length) % self.capacity
            end = write_pos + chunk.size
            if end <= self.capacity:
                self._buffer[write_pos:end] = chunk
            else:
                first = self.capacity - write_pos
                self._buffer[write_pos:] = chunk[:first]
                self._buffer[: end - self.capacity] = chunk[first:]
            self._length += chunk.size

        return int(chunk.size)

    def read(self, n: int) -> bytes:
        if n <= 0:
            return b""

        with self._lock:
            count = min(n, self._length)
            if count == 0:
                return b""

            end = self._read_pos + count
            if end <= self.capacity:
                out = self._buffer[self._read_pos : end].tobytes()
            else:
                out = self._buffer[self._read_pos :].tobytes() + self._buffer[: end - self.capacity].tobytes()
            self._discard(count)

        return out

    def available(self) -> int:
        return self._length

    def free(self) -> int:
        return self.capacity - self._length

    def size(self) -> int:
        return self.capacity

    def is_empty(self) -> bool:
        return self._length == 0

    def is_full(self) -> bool:
        return self._length == self.capacity

    def reset(self) -> None:
        with self._lock:
            self._read_pos = 0
            self._length = 0

    def _discard(self, count: int) -> None:
        # caller holds the lock
        self._read_pos = (self._read_pos + count) % self.capacity
        self._length -= count
        if self._length == 0:
            self._read_pos = 0
