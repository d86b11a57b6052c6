"""Millisecond timestamps, the unit used in persisted documents."""

from __future__ import annotations

import time

MS_PER_HOUR = 60 * 60 * 1000


def now_ms() -> int:
    """Current time in integer milliseconds since the epoch."""
    return int(time.time() * 1000)
