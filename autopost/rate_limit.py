"""In-process sliding-window rate limiter for the HTTP trigger.

State lives in memory and resets when the process restarts.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

# Generation: 5 requests per hour per client
GENERATE_LIMIT = 5
GENERATE_WINDOW_SECONDS = 60 * 60


class SlidingWindowRateLimiter:
    """Allow at most ``limit`` calls per ``window_seconds`` for each key."""

    def __init__(self, limit: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def _prune(self, key: str, now: float) -> Deque[float]:
        """Drop expired hits for ``key``; keys left with no hits are deleted."""
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def _sweep(self, now: float) -> None:
        """Prune every key, at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for key in list(self._hits):
            self._prune(key, now)

    def check(self, key: str) -> bool:
        """Record a call for ``key`` and return whether it is allowed."""
        with self._lock:
            now = self._clock()
            self._sweep(now)
            hits = self._prune(key, now)
            if len(hits) >= self.limit:
                return False
            hits.append(now)
            self._hits[key] = hits
            return True

    def remaining(self, key: str) -> int:
        """Calls still allowed for ``key`` in the current window."""
        with self._lock:
            hits = self._prune(key, self._clock())
            return max(0, self.limit - len(hits))

    def tracked_keys(self) -> int:
        """Number of keys with hits in the current window."""
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        """Forget every key."""
        with self._lock:
            self._hits.clear()
