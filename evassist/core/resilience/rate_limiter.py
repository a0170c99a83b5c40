#!/usr/bin/env python3
"""
Fixed-Window Rate Limiter

Per-principal throttle for outbound upstream calls.

Window boundaries are computed by integer division of the current time by
the window length. A principal can therefore be admitted up to 2x the limit
across a boundary (end of one window + start of the next). That burst is an
accepted trade-off against a sliding window, not a bug.

Author: System Architect
Date: 2026-01-12
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from evassist.core.config.constants import Stage
from evassist.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


@dataclass
class RateLimitWindow:
    """Admission counter of one principal within one window."""

    principal: str
    window_start: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: float


class FixedWindowRateLimiter:
    """
    STAGE-RL: Fixed-window admission control.

    Usage:
        limiter = FixedWindowRateLimiter(limit=20, window_seconds=60)
        if not limiter.try_acquire("user-42"):
            ...
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
        max_principals: int = 10000,
    ):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._max_principals = max_principals
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    def _window_start(self, now: float) -> float:
        return int(now // self.window_seconds) * self.window_seconds

    def acquire(self, principal: str) -> RateLimitDecision:
        """
        Check and, when admitted, count one request for principal.

        The read, reset and increment happen under one lock, so two callers
        for the same principal can never both take the last slot.
        """
        with self._lock:
            now = self._clock()
            start = self._window_start(now)
            window = self._windows.get(principal)
            if window is None or window.window_start != start:
                if window is None and len(self._windows) >= self._max_principals:
                    self._prune(start)
                window = RateLimitWindow(principal=principal, window_start=start)
                self._windows[principal] = window

            retry_after = max(0.0, start + self.window_seconds - now)
            if window.count < self.limit:
                window.count += 1
                return RateLimitDecision(True, self.limit - window.count, retry_after)

        log_stage(
            logger,
            Stage.RATE_LIMITING,
            "Rate limit exceeded",
            level="warning",
            principal=principal,
            limit=self.limit,
            retry_after=round(retry_after, 3),
        )
        return RateLimitDecision(False, 0, retry_after)

    def try_acquire(self, principal: str) -> bool:
        return self.acquire(principal).allowed

    def _prune(self, current_start: float) -> None:
        stale = [p for p, w in self._windows.items() if w.window_start != current_start]
        for principal in stale:
            del self._windows[principal]

    def window_for(self, principal: str) -> RateLimitWindow | None:
        with self._lock:
            return self._windows.get(principal)
