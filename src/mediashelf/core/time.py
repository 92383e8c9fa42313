from __future__ import annotations

import time


def now_ms() -> int:
    """Return the current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def mtime_ms(st_mtime: float) -> float:
    return st_mtime * 1000.0
