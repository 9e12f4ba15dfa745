from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Protocol


class Clock(Protocol):
    def now(self) -> float:
        """Return monotonic seconds."""


class SystemClock:
    def now(self) -> float:
        return time.monotonic()


@dataclass(slots=True)
class FakeClock:
    """Clock that only moves through :meth:`advance`."""

    current: float = 0.0

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        self.current += seconds


@dataclass(slots=True)
class Throttle:
    """Admits at most one call per ``interval_s``; the first call always passes."""

    clock: Clock
    interval_s: float
    _last: float | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        if self.interval_s <= 0:
            raise ValueError("interval_s must be > 0")

    def ready(self) -> bool:
        now = self.clock.now()
        if self._last is not None and now - self._last < self.interval_s:
            return False
        self._last = now
        return True


@dataclass(slots=True)
class QuietTimer:
    """Tracks how long the input has stayed quiet."""

    clock: Clock
    _since: float | None = field(init=False, default=None)

    def update(self, quiet: bool) -> float:
        """Record one observation and return the quiet duration so far in seconds."""
        if not quiet:
            self._since = None
            return 0.0
        now = self.clock.now()
        if self._since is None:
            self._since = now
        return now - self._since

    def reset(self) -> None:
        self._since = None
