"""Per-document throttle and dedup state."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass
class AnalysisThrottle:
    """Allows one full-page analysis per window; extra calls are dropped.

    Only elapsed time since the last accepted run is checked.
    """

    window: float = 1.0
    clock: Callable[[], float] = time.monotonic
    _last_run: Optional[float] = field(default=None, init=False)

    def try_acquire(self) -> bool:
        now = self.clock()
        if self._last_run is not None and now - self._last_run < self.window:
            return False
        self._last_run = now
        return True

    def reset(self) -> None:
        self._last_run = None


@dataclass
class AlertDedup:
    """Remembers resource identifiers that already produced an alert."""

    _seen: set[str] = field(default_factory=set, init=False)

    def first_time(self, key: str) -> bool:
        """Record ``key``; True only the first time it is offered."""
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def __contains__(self, key: str) -> bool:
        return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def reset(self) -> None:
        self._seen.clear()


class ObserverGuard:
    """Throttle + dedup for one Observer; reset on document reload."""

    def __init__(self, throttle_window: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.throttle = AnalysisThrottle(window=throttle_window, clock=clock)
        self.dedup = AlertDedup()

    def reset(self) -> None:
        self.throttle.reset()
        self.dedup.reset()
