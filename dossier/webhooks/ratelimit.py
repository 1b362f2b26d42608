"""Per-sender sliding-window rate limiting."""

from __future__ import annotations

import collections
import time
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc


class SlidingWindowLimiter:
    """Allow at most ``limit`` hits per key within ``window_s`` seconds.

    State lives in memory, so each process limits independently.
    """

    def __init__(
        self,
        limit: int,
        window_s: float,
        *,
        clock: cabc.Callable[[], float] = time.monotonic,
    ) -> None:
        """Store the limit, window and clock."""
        self._limit = limit
        self._window_s = window_s
        self._clock = clock
        self._hits: dict[str, collections.deque[float]] = {}

    def _prune(self, key: str, now: float) -> collections.deque[float]:
        hits = self._hits.setdefault(key, collections.deque())
        while hits and now - hits[0] >= self._window_s:
            hits.popleft()
        return hits

    def hit(self, key: str) -> bool:
        """Record a hit for ``key`` and return whether it is allowed.

        Rejected hits are not recorded.
        """
        now = self._clock()
        hits = self._prune(key, now)
        if len(hits) >= self._limit:
            return False
        hits.append(now)
        return True

    def retry_after(self, key: str) -> float:
        """Seconds until ``key`` may hit again; zero when it may now."""
        now = self._clock()
        hits = self._prune(key, now)
        if len(hits) < self._limit:
            return 0.0
        return max(0.0, self._window_s - (now - hits[0]))
