"""
Trailing-window event rate (blinks per retention window).
"""
from __future__ import annotations
import logging
from collections import deque
from typing import Deque

logger = logging.getLogger(__name__)


class RateAggregator:
    """Keeps event timestamps (seconds) and counts those inside the trailing window."""
    def __init__(self, retention: float = 60.0):
        self.retention = float(retention)
        self._stamps: Deque[float] = deque()

    def record(self, ts: float) -> None:
        if self._stamps and ts <= self._stamps[-1]:
            logger.warning(f"[rate] ignoring non-monotonic timestamp {ts} (last {self._stamps[-1]})")
            return
        self._stamps.append(float(ts))

    def rate(self, now: float, retention: float | None = None) -> int:
        """Prune entries at least `retention` seconds old and return the remaining count."""
        if retention is not None:
            self.retention = float(retention)
        while self._stamps and now - self._stamps[0] >= self.retention:
            self._stamps.popleft()
        return len(self._stamps)

    def reset(self) -> None:
        self._stamps.clear()

    def __len__(self) -> int:
        return len(self._stamps)
