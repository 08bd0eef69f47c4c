from __future__ import annotations

import time
import uuid
from threading import Lock
from typing import Callable


def new_id() -> str:
    return uuid.uuid4().hex


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class MonotonicClock:
    """
    Epoch-millisecond timestamps that never go backwards.

    Wall clocks can step back (NTP, manual changes); `createdAt` ordering
    must not, so each reading is clamped to the previous one.
    """

    def __init__(self, source: Callable[[], int] | None = None) -> None:
        self._source = source or _wall_clock_ms
        self._last = 0
        self._lock = Lock()

    def now_ms(self) -> int:
        with self._lock:
            value = max(int(self._source()), self._last)
            self._last = value
            return value
