"""
Sliding-window smoothing of per-frame metrics.
"""
from __future__ import annotations
import math
from collections import deque
from typing import Deque, Dict

from gestures.errors import InvalidConfig
from gestures.features import yaw_from_normalized
from gestures.models import FaceMetrics

SMOOTHED_FIELDS = ("ear_left", "ear_right", "ear_avg", "mar", "normalized_x")


class SlidingWindowSmoother:
    """Arithmetic mean over the last `window` values, one buffer per metric name."""
    def __init__(self, window: int = 1):
        self._check(window)
        self.window = int(window)
        self._buffers: Dict[str, Deque[float]] = {}

    @staticmethod
    def _check(window: int) -> None:
        if int(window) < 1:
            raise InvalidConfig(f"smoothing window must be >= 1, got {window}")

    def resize(self, window: int) -> None:
        """
        Change the window length. Shrinking drops the oldest values right away;
        growing keeps what is buffered and never backfills.
        """
        self._check(window)
        window = int(window)
        if window == self.window:
            return
        self.window = window
        # deque(iterable, maxlen) keeps the newest `maxlen` items
        self._buffers = {k: deque(q, maxlen=window) for k, q in self._buffers.items()}

    def update(self, name: str, value: float) -> float:
        q = self._buffers.get(name)
        if q is None:
            q = self._buffers[name] = deque(maxlen=self.window)
        q.append(float(value))
        # shifted mean: a run of identical values averages to exactly that value
        base = q[0]
        return base + math.fsum(v - base for v in q) / len(q)

    def smooth(self, metrics: FaceMetrics) -> FaceMetrics:
        """Smooth a full metric set; yaw is re-derived from the smoothed normalized_x."""
        out = {name: self.update(name, getattr(metrics, name)) for name in SMOOTHED_FIELDS}
        out["yaw_deg"] = yaw_from_normalized(out["normalized_x"])
        return FaceMetrics(**out)

    def reset(self) -> None:
        self._buffers.clear()

    def __len__(self) -> int:
        return len(self._buffers)
