"""
Pydantic data models for frames, metrics, events and per-frame snapshots.
"""
from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional, Literal, Sequence

GestureKind = Literal["blink", "mouth_open", "mouth_close", "head_turn"]
Direction = Literal["left", "center", "right"]


class LandmarkPoint(BaseModel):
    x: float
    y: float
    z: float = 0.0


class LandmarkFrame(BaseModel):
    """One frame of landmarks keyed by stable landmark index."""
    points: Dict[int, LandmarkPoint]
    timestamp: float  # epoch seconds

    @classmethod
    def from_normalized(cls, landmarks: Sequence, width: int, height: int,
                        timestamp: float) -> "LandmarkFrame":
        """
        Build a frame from a MediaPipe-style landmark list with coordinates in
        0..1, scaling x/y into pixel space. Items may be objects with x/y/z
        attributes, dicts, or (x, y[, z]) tuples.
        """
        points: Dict[int, LandmarkPoint] = {}
        for i, lm in enumerate(landmarks):
            if isinstance(lm, dict):
                x, y, z = lm["x"], lm["y"], lm.get("z", 0.0)
            elif isinstance(lm, (list, tuple)):
                x, y = lm[0], lm[1]
                z = lm[2] if len(lm) > 2 else 0.0
            else:
                x, y, z = lm.x, lm.y, getattr(lm, "z", 0.0) or 0.0
            points[i] = LandmarkPoint(x=float(x) * width, y=float(y) * height, z=float(z))
        return cls(points=points, timestamp=timestamp)


class FaceMetrics(BaseModel):
    ear_left: float
    ear_right: float
    ear_avg: float
    mar: float
    yaw_deg: float
    normalized_x: float


class GestureEvent(BaseModel):
    kind: GestureKind
    metrics: FaceMetrics  # smoothed values at the firing frame
    timestamp: float
    direction: Optional[Literal["left", "right"]] = None
    session_id: Optional[str] = None  # stamped by the owning session, not part of the record

    def to_record(self) -> dict:
        """Flat transport record: metric value(s), epoch-ms timestamp, optional direction."""
        rec: dict = {"type": self.kind}
        if self.kind == "blink":
            rec["ear"] = self.metrics.ear_avg
        elif self.kind in ("mouth_open", "mouth_close"):
            rec["mar"] = self.metrics.mar
        else:
            rec["yaw_deg"] = self.metrics.yaw_deg
            rec["normalized_x"] = self.metrics.normalized_x
        rec["timestamp"] = int(round(self.timestamp * 1000))
        if self.direction is not None:
            rec["direction"] = self.direction
        return rec


class GestureRecord(BaseModel):
    """A flat record submitted by an external producer."""
    model_config = ConfigDict(extra="allow")

    type: GestureKind
    timestamp: Optional[int] = None
    direction: Optional[Literal["left", "right"]] = None


# per-frame snapshot


class FrameResult(BaseModel):
    ts: float
    status: Literal["ok", "missing_landmarks", "dropped"] = "ok"
    reason: Optional[str] = None
    raw: Optional[FaceMetrics] = None
    smoothed: Optional[FaceMetrics] = None
    blink_phase: Optional[str] = None
    blink_counter: int = 0
    mouth_open: bool = False
    direction: Optional[Direction] = None
    blink_count: int = 0
    mouth_count: int = 0
    blink_rate: int = 0
    events: List[GestureEvent] = Field(default_factory=list)


class SessionStatus(BaseModel):
    session_id: str
    started_at: float
    frames: int
    last_result: FrameResult | None = None
