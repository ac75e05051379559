"""Process-wide counters and timings for crop sessions.

The controller counts every ``save()`` outcome (``crop.save_started``,
``crop.save_rejected``, ``crop.save_succeeded``, ``crop.save_failed``) and
times each decode/encode stage (``crop.decode_preview``, ``crop.decode_region``,
``crop.encode``).
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from contextlib import contextmanager
from typing import Any


class _Metrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Counter[str] = Counter()
        self._durations: dict[str, list[float]] = {}

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counts[key] += int(amount)

    @contextmanager
    def timed(self, key: str):
        """Record the wall time of the block under ``key``, even when it raises."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._record(key, time.perf_counter() - t0)

    def _record(self, key: str, seconds: float) -> None:
        with self._lock:
            self._durations.setdefault(key, []).append(seconds)

    def counter(self, key: str) -> int:
        with self._lock:
            return self._counts[key]

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": {k: v for k, v in self._counts.items() if v},
                "timings": {k: list(v) for k, v in self._durations.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._durations.clear()


metrics = _Metrics()
