"""Mutation filtering and the re-scan debounce timer."""

from __future__ import annotations

import time
from typing import Callable, Iterable, Optional

from bs4 import Tag

from ..dom.document import MutationRecord


def adds_form(records: Iterable[MutationRecord]) -> bool:
    """True when any added element is a form or contains one."""
    for record in records:
        for node in record.added_nodes:
            if not isinstance(node, Tag):
                continue
            if node.name == "form" or node.find("form") is not None:
                return True
    return False


class DebounceTimer:
    """Single pending deadline; arming while pending keeps the first deadline."""

    def __init__(self, delay: float, clock: Callable[[], float] = time.monotonic):
        self.delay = delay
        self.clock = clock
        self.deadline: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self.deadline is not None

    def arm(self) -> bool:
        """Schedule a fire; returns False when one is already scheduled."""
        if self.deadline is not None:
            return False
        self.deadline = self.clock() + self.delay
        return True

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self.clock())

    def expired(self) -> bool:
        return self.deadline is not None and self.clock() >= self.deadline

    def clear(self) -> None:
        self.deadline = None


class MutationWatcher:
    """Decides whether document mutations warrant a debounced re-scan."""

    def __init__(self, delay: float, clock: Callable[[], float] = time.monotonic):
        self.timer = DebounceTimer(delay, clock)
        self.batches_seen = 0
        self.rescans_scheduled = 0

    def offer(self, records: list[MutationRecord]) -> bool:
        """Inspect a mutation batch; returns True when it scheduled a re-scan."""
        self.batches_seen += 1
        if not adds_form(records):
            return False
        if self.timer.arm():
            self.rescans_scheduled += 1
            return True
        return False

    def due(self) -> bool:
        """Consume an expired deadline."""
        if self.timer.expired():
            self.timer.clear()
            return True
        return False

    def reset(self) -> None:
        self.timer.clear()
