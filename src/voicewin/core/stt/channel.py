from __future__ import annotations

import asyncio
import logging
import queue
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class EventChannel(Generic[T]):
    """Bounded event queue whose publish side never blocks.

    When the channel is full the oldest pending event is dropped to make room.
    """

    name: str
    capacity: int = 10
    dropped: int = 0

    _queue: queue.Queue[T] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._queue = queue.Queue(maxsize=self.capacity)

    def publish(self, item: T) -> None:
        for _ in range(2):
            try:
                self._queue.put_nowait(item)
                return
            except queue.Full:
                try:
                    stale = self._queue.get_nowait()
                except queue.Empty:
                    continue
                self.dropped += 1
                logger.warning("[STT] %s channel full, dropped %r", self.name, stale)

        self.dropped += 1
        logger.warning("[STT] %s channel full, dropped %r", self.name, item)

    def get(self, timeout: float | None = None) -> T:
        return self._queue.get(timeout=timeout)

    async def receive(self, poll_interval_s: float = 0.01) -> T:
        while True:
            try:
                return self._queue.get_nowait()
            except queue.Empty:
                await asyncio.sleep(poll_interval_s)

    def drain(self) -> list[T]:
        items: list[T] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def clear(self) -> None:
        self.drain()

    def __len__(self) -> int:
        return self._queue.qsize()
