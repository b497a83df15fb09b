"""
Per-caller throttle for ``POST /relay``.

The relay itself never throttles; the HTTP host consults this limiter
before taking the relay lock. Callers are keyed by identity, which any
client can choose freely, so idle keys are swept once per window to keep
memory bounded by the callers seen in the last window.
"""

import threading
import time
from collections import deque
from typing import Deque, Dict, Optional


class RateLimiter:
    """
    Sliding window rate limiter.

    Args:
        rpm: Relays admitted per caller per window
        window_seconds: Window size in seconds (default 60)
        clock: Time source, overridable in tests
    """

    def __init__(self, rpm: int, window_seconds: int = 60, clock=time.time):
        self._limit = max(1, rpm)
        self._window = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        """Number of callers currently tracked."""
        with self._lock:
            return len(self._hits)

    def allow(self, key: str) -> bool:
        """Record a hit for ``key`` and say whether it fits in the window."""
        now = self._clock()
        window_start = now - self._window

        with self._lock:
            if now - self._last_sweep >= self._window:
                self._sweep(window_start)
                self._last_sweep = now

            hits = self._hits.get(key)
            if hits is None:
                hits = self._hits[key] = deque()

            while hits and hits[0] <= window_start:
                hits.popleft()

            if len(hits) >= self._limit:
                return False

            hits.append(now)
            return True

    def retry_after(self, key: str) -> float:
        """Seconds until ``key`` may relay again; 0 when it may relay now."""
        now = self._clock()
        with self._lock:
            hits = self._hits.get(key)
            if not hits or len(hits) < self._limit:
                return 0.0
            return max(0.0, hits[0] + self._window - now)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one caller, or every caller when ``key`` is None."""
        with self._lock:
            if key:
                self._hits.pop(key, None)
            else:
                self._hits.clear()

    def _sweep(self, window_start: float) -> None:
        # Newest hit is last; a key whose newest hit left the window is idle.
        idle = [k for k, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for k in idle:
            del self._hits[k]
