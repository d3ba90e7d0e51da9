# gestures/session.py
from __future__ import annotations
import logging
import threading
import time
import uuid
from typing import List, Optional

from gestures.config import ConfigStore, Settings
from gestures.detectors import BlinkDetector, BlinkStrategy, HeadTurnDetector, MouthDetector
from gestures.emitter import EventEmitter
from gestures.errors import MissingLandmarks
from gestures.features import extract_features
from gestures.models import FrameResult, GestureEvent, LandmarkFrame, SessionStatus
from gestures.rate import RateAggregator
from gestures.smoothing import SlidingWindowSmoother

logger = logging.getLogger(__name__)


class GestureSession:
    """
    All per-face gesture state for one stream of frames.

    process() runs extract -> smooth -> detectors -> rate -> emit for one frame
    against a single config snapshot. Frames are handled strictly one at a
    time and in timestamp order; anything overlapping or out of order is
    dropped rather than reordered.
    """
    def __init__(self,
                 config: ConfigStore | Settings | None = None,
                 emitter: Optional[EventEmitter] = None,
                 session_id: Optional[str] = None,
                 blink_strategy: Optional[BlinkStrategy] = None):
        if isinstance(config, Settings) or config is None:
            config = ConfigStore(config)
        self.config = config
        self.emitter = emitter or EventEmitter()
        self.session_id = session_id or uuid.uuid4().hex
        self._blink_strategy = blink_strategy
        self._tick = threading.Lock()
        self.started_at = time.time()
        self._init_state()

    def _init_state(self) -> None:
        s = self.config.get()
        self.smoother = SlidingWindowSmoother(s.SMOOTHING_WINDOW)
        self.blink = BlinkDetector(self._blink_strategy)
        self.mouth = MouthDetector()
        self.head_turn = HeadTurnDetector()
        self.rate = RateAggregator(s.BLINK_RATE_WINDOW)
        self._reset_counters()

    def _reset_counters(self) -> None:
        self.blink_count = 0
        self.mouth_count = 0
        self.frames = 0
        self.last_ts: Optional[float] = None
        self.last_result: Optional[FrameResult] = None

    # ---- per-frame tick ----
    def process(self, frame: LandmarkFrame) -> FrameResult:
        if not self._tick.acquire(blocking=False):
            logger.debug(f"[session {self.session_id}] tick in progress, dropping frame ts={frame.timestamp}")
            return FrameResult(ts=frame.timestamp, status="dropped", reason="busy")
        try:
            return self._process(frame, self.config.get())
        finally:
            self._tick.release()

    def _process(self, frame: LandmarkFrame, s: Settings) -> FrameResult:
        ts = frame.timestamp
        if self.last_ts is not None and ts <= self.last_ts:
            logger.debug(f"[session {self.session_id}] out-of-order frame ts={ts} last={self.last_ts}")
            return FrameResult(ts=ts, status="dropped", reason="out_of_order")

        try:
            raw = extract_features(frame, s)
        except MissingLandmarks as e:
            logger.debug(f"[session {self.session_id}] skipping frame: {e}")
            return FrameResult(ts=ts, status="missing_landmarks", reason=str(e))

        self.last_ts = ts
        self.frames += 1
        self.smoother.resize(s.SMOOTHING_WINDOW)
        smoothed = self.smoother.smooth(raw)

        events: List[GestureEvent] = []
        blink = self.blink.step(smoothed, s, ts)
        if blink is not None:
            self.blink_count += 1
            self.rate.record(ts)
            events.append(blink)

        mouth = self.mouth.step(smoothed, s, ts)
        if mouth is not None:
            if mouth.kind == "mouth_open":
                self.mouth_count += 1
            events.append(mouth)

        direction, turn = self.head_turn.step(smoothed, s, ts)
        if turn is not None:
            events.append(turn)

        blink_rate = self.rate.rate(ts, s.BLINK_RATE_WINDOW)

        for ev in events:
            ev.session_id = self.session_id
            self.emitter.emit(ev)

        result = FrameResult(
            ts=ts,
            raw=raw,
            smoothed=smoothed,
            blink_phase=self.blink.phase.value,
            blink_counter=self.blink.counter,
            mouth_open=self.mouth.is_open,
            direction=direction,
            blink_count=self.blink_count,
            mouth_count=self.mouth_count,
            blink_rate=blink_rate,
            events=events,
        )
        self.last_result = result
        return result

    # ---- lifecycle ----
    def status(self) -> SessionStatus:
        return SessionStatus(
            session_id=self.session_id,
            started_at=self.started_at,
            frames=self.frames,
            last_result=self.last_result,
        )

    def close(self) -> None:
        """Discard all gesture state."""
        with self._tick:
            self.smoother.reset()
            self.blink.reset()
            self.mouth.reset()
            self.rate.reset()
            self._reset_counters()
        logger.debug(f"[session {self.session_id}] closed")
