"""Time helpers."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Wall-clock epoch milliseconds, the timestamp unit used in messages."""
    return int(time.time() * 1000)
