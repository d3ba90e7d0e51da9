"""
Per-gesture state machines.

Each detector consumes smoothed metrics once per frame and returns the event it
fired, if any. Thresholds and debounce counts come from the Settings snapshot
passed to step(), so runtime config changes apply from the next frame on.
"""
from __future__ import annotations
import logging
from enum import Enum
from typing import Dict, Optional, Tuple

from gestures.config import Settings
from gestures.models import Direction, FaceMetrics, GestureEvent

logger = logging.getLogger(__name__)


class BlinkPhase(str, Enum):
    OPEN = "open"
    CLOSING = "closing"


class MouthPhase(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


# -----------------------------------------------------------------------------
# Blink: closed-eye evaluation strategies
# -----------------------------------------------------------------------------
class BlinkStrategy:
    """Decides whether the eyes count as closed on this frame."""
    name = ""

    def is_closed(self, metrics: FaceMetrics, threshold: float) -> bool:
        raise NotImplementedError


class AverageEarStrategy(BlinkStrategy):
    """Mean of both eyes below threshold."""
    name = "average"

    def is_closed(self, metrics: FaceMetrics, threshold: float) -> bool:
        return metrics.ear_avg < threshold


class PerEyeAndStrategy(BlinkStrategy):
    """Each eye below threshold on its own; a one-eyed wink does not count."""
    name = "per_eye"

    def is_closed(self, metrics: FaceMetrics, threshold: float) -> bool:
        return metrics.ear_left < threshold and metrics.ear_right < threshold


BLINK_STRATEGIES: Dict[str, BlinkStrategy] = {
    s.name: s for s in (AverageEarStrategy(), PerEyeAndStrategy())
}


class BlinkDetector:
    """
    Debounced blink detection.

    - closed frame: OPEN -> CLOSING with counter=1, or counter += 1 while CLOSING
    - counter reaching DEBOUNCE_FRAMES fires one blink; the phase stays CLOSING,
      so a long closed run fires once
    - any open frame resets to OPEN / 0, which re-arms the detector
    """
    def __init__(self, strategy: Optional[BlinkStrategy] = None):
        # None -> follow Settings.BLINK_STRATEGY each frame
        self.strategy = strategy
        self.phase = BlinkPhase.OPEN
        self.counter = 0

    def step(self, metrics: FaceMetrics, settings: Settings, ts: float) -> Optional[GestureEvent]:
        strategy = self.strategy or BLINK_STRATEGIES[settings.BLINK_STRATEGY]
        if not strategy.is_closed(metrics, settings.EAR_THRESHOLD):
            self.phase = BlinkPhase.OPEN
            self.counter = 0
            return None

        if self.phase is BlinkPhase.OPEN:
            self.phase = BlinkPhase.CLOSING
            self.counter = 1
        else:
            self.counter += 1

        if self.counter == settings.DEBOUNCE_FRAMES:
            logger.debug(f"[blink] fired after {self.counter} frames ear={metrics.ear_avg:.3f} strategy={strategy.name}")
            return GestureEvent(kind="blink", metrics=metrics, timestamp=ts)
        return None

    def reset(self) -> None:
        self.phase = BlinkPhase.OPEN
        self.counter = 0


class MouthDetector:
    """Single-threshold hysteresis; fires on every crossing."""
    def __init__(self):
        self.phase = MouthPhase.CLOSED

    @property
    def is_open(self) -> bool:
        return self.phase is MouthPhase.OPEN

    def step(self, metrics: FaceMetrics, settings: Settings, ts: float) -> Optional[GestureEvent]:
        if metrics.mar > settings.MAR_THRESHOLD:
            if self.phase is MouthPhase.CLOSED:
                self.phase = MouthPhase.OPEN
                return GestureEvent(kind="mouth_open", metrics=metrics, timestamp=ts)
        elif self.phase is MouthPhase.OPEN:
            self.phase = MouthPhase.CLOSED
            return GestureEvent(kind="mouth_close", metrics=metrics, timestamp=ts)
        return None

    def reset(self) -> None:
        self.phase = MouthPhase.CLOSED


class HeadTurnDetector:
    """
    Stateless two-tier head turn classification.

    The direction readout uses the classify thresholds; an event fires only
    while |normalized_x| is above the larger emit threshold.
    """
    @staticmethod
    def classify(normalized_x: float, settings: Settings) -> Direction:
        if normalized_x > settings.TURN_LEFT_THRESH:
            return "left"
        if normalized_x < -settings.TURN_RIGHT_THRESH:
            return "right"
        return "center"

    def step(self, metrics: FaceMetrics, settings: Settings,
             ts: float) -> Tuple[Direction, Optional[GestureEvent]]:
        direction = self.classify(metrics.normalized_x, settings)
        if abs(metrics.normalized_x) <= settings.TURN_EMIT_THRESH:
            return direction, None
        return direction, GestureEvent(
            kind="head_turn",
            metrics=metrics,
            timestamp=ts,
            direction=None if direction == "center" else direction,
        )
